from entrega.storage.config import S3Config
from entrega.storage.client import S3Client
from entrega.storage.service import StorageService, get_storage_service

__all__ = ["S3Config", "S3Client", "StorageService", "get_storage_service"]
