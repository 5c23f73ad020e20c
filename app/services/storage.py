from __future__ import annotations

import asyncio
import uuid
from typing import Optional

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from app.core import clock
from app.core.config import Settings, get_settings


class StorageService:
    """Document blobs in Cloudflare R2 (S3 API)."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or get_settings()
        self._client = None
        self._bucket_name = self.settings.r2_bucket_name

    @property
    def configured(self) -> bool:
        return self.settings.storage_configured

    @property
    def client(self):
        """Lazy initialization of R2 client."""
        if self._client is None:
            if not self.configured:
                raise ValueError(
                    "R2 configuration incomplete. Please set R2_ACCESS_KEY_ID, "
                    "R2_SECRET_ACCESS_KEY, R2_BUCKET_NAME, and R2_ENDPOINT_URL"
                )

            self._client = boto3.client(
                "s3",
                endpoint_url=self.settings.r2_endpoint_url,
                aws_access_key_id=self.settings.r2_access_key_id,
                aws_secret_access_key=self.settings.r2_secret_access_key,
                region_name="auto",  # R2 uses "auto" as region
                config=Config(signature_version="s3v4"),
            )
        return self._client

    def build_key(self, fleet_id: str, entity_type: str, entity_id: str, filename: str) -> str:
        """Storage key scoped by fleet and entity, unique per upload."""
        unique_id = str(uuid.uuid4())[:8]
        timestamp = clock.utc_now().strftime("%Y%m%d%H%M%S")
        extension = filename.rsplit(".", 1)[-1].lower() if "." in filename else "bin"
        return f"{fleet_id}/{entity_type}/{entity_id}/{timestamp}_{unique_id}.{extension}"

    async def put(self, content: bytes, key: str, content_type: Optional[str] = None) -> str:
        def _put() -> None:
            self.client.put_object(
                Bucket=self._bucket_name,
                Key=key,
                Body=content,
                ContentType=content_type or "application/octet-stream",
            )

        try:
            await asyncio.to_thread(_put)
        except (ClientError, BotoCoreError) as exc:
            raise ValueError(f"Failed to upload file to R2: {exc}") from exc
        return key

    async def get(self, key: str) -> bytes:
        def _get() -> bytes:
            response = self.client.get_object(Bucket=self._bucket_name, Key=key)
            return response["Body"].read()

        try:
            return await asyncio.to_thread(_get)
        except (ClientError, BotoCoreError) as exc:
            raise ValueError(f"Failed to download file from R2: {exc}") from exc

    async def delete(self, key: str) -> bool:
        def _delete() -> None:
            self.client.delete_object(Bucket=self._bucket_name, Key=key)

        try:
            await asyncio.to_thread(_delete)
            return True
        except (ClientError, BotoCoreError):
            return False

    def get_signed_url(self, key: str, expires_in: Optional[int] = None) -> str:
        try:
            return self.client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self._bucket_name, "Key": key},
                ExpiresIn=expires_in or self.settings.signed_url_ttl_seconds,
            )
        except (ClientError, BotoCoreError) as exc:
            raise ValueError(f"Failed to generate presigned URL: {exc}") from exc

    async def check_connection(self) -> bool:
        def _head() -> None:
            self.client.head_bucket(Bucket=self._bucket_name)

        try:
            await asyncio.to_thread(_head)
            return True
        except (ClientError, BotoCoreError, ValueError):
            return False
