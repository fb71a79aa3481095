import os


class S3Config:
    """Configuração S3/MinIO lida de variáveis de ambiente."""

    def __init__(self):
        endpoint_url = os.getenv("S3_ENDPOINT_URL", "http://localhost:9000")

        # Placeholder copiado do .env.example sem editar
        if "SEU_S3" in endpoint_url.upper():
            raise ValueError(
                f"Variável S3_ENDPOINT_URL contém placeholder inválido: {endpoint_url}. "
                f"Configure S3_ENDPOINT_URL, S3_ACCESS_KEY_ID, S3_SECRET_ACCESS_KEY e S3_BUCKET_NAME no .env"
            )

        self.endpoint_url: str = endpoint_url
        self.access_key_id: str = os.getenv("S3_ACCESS_KEY_ID", "minio")
        self.secret_access_key: str = os.getenv("S3_SECRET_ACCESS_KEY", "minio12345")
        self.bucket_name: str = os.getenv("S3_BUCKET_NAME", "entrega")
        self.region: str = os.getenv("S3_REGION", "us-east-1")
        self.use_ssl: bool = os.getenv("S3_USE_SSL", "false").lower() == "true"
        # Validade (segundos) das URLs de download de documentos
        self.document_url_expiration: int = int(os.getenv("DOCUMENT_URL_EXPIRATION", "60"))
