import io
import boto3
from boto3.s3.transfer import TransferConfig
from botocore.exceptions import BotoCoreError, ClientError
from .base import StorageBackend, StorageError, StoredObject

DEFAULT_PART_SIZE = 10 * 1024 * 1024  # 10 MB


class S3StorageBackend(StorageBackend):
    """S3 backend; uploads go through the managed transfer so large outputs are sent in parts"""

    def __init__(self, client=None, part_size: int = DEFAULT_PART_SIZE):
        self.s3_client = client or boto3.client('s3')
        self.transfer_config = TransferConfig(
            multipart_threshold=part_size,
            multipart_chunksize=part_size
        )

    def fetch(self, bucket: str, key: str) -> StoredObject:
        try:
            response = self.s3_client.get_object(Bucket=bucket, Key=key)
            return StoredObject(
                data=response['Body'].read(),
                content_type=response.get('ContentType')
            )
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to fetch s3://{bucket}/{key}: {str(e)}") from e

    def store(self, bucket: str, key: str, data: bytes, content_type: str, access_policy: str) -> None:
        try:
            self.s3_client.upload_fileobj(
                io.BytesIO(data),
                bucket,
                key,
                ExtraArgs={
                    'ACL': access_policy,
                    'ContentType': content_type,
                    'StorageClass': 'STANDARD'
                },
                Config=self.transfer_config
            )
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to store s3://{bucket}/{key}: {str(e)}") from e

    def get_provider_name(self) -> str:
        return "s3"
