"""Publish reports to S3-compatible object storage with presigned URLs."""

from __future__ import annotations

import logging
import time
import uuid
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from droneops.delivery.base import DOCX_MIME, XLSX_MIME, PublishedLinks
from droneops.utils.errors import StorageError

logger = logging.getLogger("droneops.delivery")

PRESIGN_GET_EXPIRES = 60 * 60 * 24


class S3Publisher:
    """Upload both documents under ``{prefix}/{folder}/`` and presign GET URLs."""

    def __init__(
        self,
        bucket: str,
        *,
        client: Any | None = None,
        prefix: str = "reports",
        expires_in: int = PRESIGN_GET_EXPIRES,
        endpoint_url: str | None = None,
    ) -> None:
        if not bucket:
            raise ValueError("S3 bucket name is required")
        self.bucket = bucket
        self.prefix = prefix.strip("/")
        self.expires_in = expires_in
        self._client = client or boto3.client("s3", endpoint_url=endpoint_url)

    def publish(
        self, word_bytes: bytes, excel_bytes: bytes, word_name: str, excel_name: str
    ) -> PublishedLinks:
        folder = f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"
        word_key = self._key(folder, word_name)
        excel_key = self._key(folder, excel_name)

        uploaded: list[str] = []
        try:
            self._put(word_key, word_bytes, DOCX_MIME, word_name)
            uploaded.append(word_key)
            self._put(excel_key, excel_bytes, XLSX_MIME, excel_name)
            uploaded.append(excel_key)
            links = PublishedLinks(
                word_url=self._presign(word_key),
                excel_url=self._presign(excel_key),
            )
        except (BotoCoreError, ClientError) as exc:
            self._discard(uploaded)
            raise StorageError(f"Could not upload reports to storage: {exc}") from exc

        logger.info("published reports to s3://%s/%s", self.bucket, word_key.rsplit("/", 1)[0])
        return links

    def _key(self, folder: str, file_name: str) -> str:
        return "/".join(part for part in (self.prefix, folder, file_name) if part)

    def _put(self, key: str, body: bytes, content_type: str, file_name: str) -> None:
        self._client.put_object(
            Bucket=self.bucket,
            Key=key,
            Body=body,
            ContentType=content_type,
            ContentDisposition=f'attachment; filename="{file_name}"',
        )

    def _presign(self, key: str) -> str:
        return self._client.generate_presigned_url(
            ClientMethod="get_object",
            Params={"Bucket": self.bucket, "Key": key},
            ExpiresIn=self.expires_in,
        )

    def _discard(self, keys: list[str]) -> None:
        for key in keys:
            try:
                self._client.delete_object(Bucket=self.bucket, Key=key)
            except (BotoCoreError, ClientError):
                logger.warning("could not remove partial upload %s", key)
