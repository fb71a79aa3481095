import io
import logging
import os
import re
import uuid
from functools import lru_cache
from typing import Optional

from entrega.storage.client import S3Client
from entrega.storage.config import S3Config

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class StorageService:
    """Arquivos de documentos no bucket, organizados por tenant e empreendimento."""

    def __init__(self, config: Optional[S3Config] = None, client: Optional[S3Client] = None):
        self.config = config or S3Config()
        self.client = client or S3Client(self.config)

    @staticmethod
    def build_document_key(tenant_id: uuid.UUID, project_id: uuid.UUID, file_name: str) -> str:
        """
        Chave S3: {tenant_id}/documents/{project_id}/{nome}_{uuid8}{ext}

        O sufixo aleatório garante que cada versão tenha um caminho próprio.
        """
        name, ext = os.path.splitext(file_name or "arquivo")
        safe_name = _UNSAFE_CHARS.sub("_", name.replace(" ", "_")) or "arquivo"
        return f"{tenant_id}/documents/{project_id}/{safe_name}_{uuid.uuid4().hex[:8]}{ext.lower()}"

    def upload_document_file(
        self,
        tenant_id: uuid.UUID,
        project_id: uuid.UUID,
        file_name: str,
        content: bytes,
        content_type: Optional[str] = None,
    ) -> str:
        """Envia o conteúdo e retorna a chave gravada."""
        s3_key = self.build_document_key(tenant_id, project_id, file_name)
        self.client.upload_fileobj(io.BytesIO(content), s3_key, content_type=content_type or "application/octet-stream")
        logger.info(f"Arquivo enviado ao storage: key={s3_key}, size={len(content)}")
        return s3_key

    def get_presigned_url(self, s3_key: str, expiration: Optional[int] = None) -> str:
        return self.client.get_presigned_url(s3_key, expiration or self.config.document_url_expiration)

    def delete_file(self, s3_key: str) -> None:
        self.client.delete_file(s3_key)
        logger.info(f"Arquivo removido do storage: key={s3_key}")


@lru_cache(maxsize=1)
def _default_storage_service() -> StorageService:
    return StorageService()


def get_storage_service() -> StorageService:
    """Dependency FastAPI; nos testes é substituída via dependency_overrides."""
    return _default_storage_service()
