from typing import BinaryIO, Optional

import boto3
from botocore.client import Config
from botocore.exceptions import ClientError

from entrega.storage.config import S3Config


class StorageError(Exception):
    """Falha de comunicação com o S3/MinIO."""


class S3Client:
    """Cliente S3/MinIO usando boto3."""

    def __init__(self, config: Optional[S3Config] = None):
        self.config = config or S3Config()
        self._client = boto3.client(
            "s3",
            endpoint_url=self.config.endpoint_url,
            aws_access_key_id=self.config.access_key_id,
            aws_secret_access_key=self.config.secret_access_key,
            region_name=self.config.region,
            use_ssl=self.config.use_ssl,
            config=Config(signature_version="s3v4"),
        )
        self._bucket_checked = False

    def ensure_bucket_exists(self) -> None:
        """Cria o bucket na primeira escrita, se ainda não existir."""
        if self._bucket_checked:
            return
        bucket = self.config.bucket_name
        try:
            self._client.head_bucket(Bucket=bucket)
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "")
            if error_code not in ("404", "NoSuchBucket"):
                raise StorageError(
                    f"Erro ao verificar bucket '{bucket}': {e}. "
                    f"Verifique se o storage está acessível em {self.config.endpoint_url}"
                ) from e
            try:
                if self.config.region == "us-east-1" or not self.config.use_ssl:
                    self._client.create_bucket(Bucket=bucket)
                else:
                    self._client.create_bucket(
                        Bucket=bucket,
                        CreateBucketConfiguration={"LocationConstraint": self.config.region},
                    )
            except ClientError as create_error:
                raise StorageError(f"Erro ao criar bucket '{bucket}': {create_error}") from create_error
        self._bucket_checked = True

    def upload_fileobj(self, file_obj: BinaryIO, s3_key: str, content_type: Optional[str] = None) -> None:
        self.ensure_bucket_exists()
        extra_args = {"ContentType": content_type} if content_type else {}
        try:
            self._client.upload_fileobj(file_obj, self.config.bucket_name, s3_key, ExtraArgs=extra_args)
        except ClientError as e:
            raise StorageError(f"Erro ao enviar arquivo para o storage: {e}") from e

    def get_presigned_url(self, s3_key: str, expiration: int) -> str:
        """URL temporária de download (GET) para a chave."""
        try:
            return self._client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.config.bucket_name, "Key": s3_key},
                ExpiresIn=expiration,
            )
        except ClientError as e:
            raise StorageError(f"Erro ao gerar URL presignada: {e}") from e

    def delete_file(self, s3_key: str) -> None:
        try:
            self._client.delete_object(Bucket=self.config.bucket_name, Key=s3_key)
        except ClientError as e:
            raise StorageError(f"Erro ao excluir arquivo do storage: {e}") from e
