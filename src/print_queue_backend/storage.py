"""
S3 file storage for uploaded 3D model files.

This module provides functionality for:
- Issuing presigned upload tickets after validating file metadata
- Confirming an upload actually landed before a job may reference it
- Generating presigned URLs for time-limited downloads
- Deleting stored files

Objects are addressed by a file_ref, the object key inside the configured
bucket. Transport errors are raised as TransportFailure; nothing is retried.
"""

from __future__ import annotations

import logging
from typing import Any, Optional
from urllib.parse import quote
from uuid import uuid4

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .errors import NotFoundError, TransportFailure
from .models import UploadTicket
from .utils import sanitize_filename
from .validation import ALLOWED_MIME_TYPES, MAX_FILE_SIZE, require_valid_file

logger = logging.getLogger(__name__)

UPLOAD_PREFIX = "uploads"

_MISSING_CODES = {"404", "NoSuchKey", "NotFound"}


def _is_missing(exc: ClientError) -> bool:
    return str(exc.response.get("Error", {}).get("Code", "")) in _MISSING_CODES


def upload_prefix(owner_id: str) -> str:
    """Key prefix under which all of one user's uploads are stored."""
    return f"{UPLOAD_PREFIX}/{quote(owner_id, safe='')}/"


class FileStorage:
    """
    Presigned-URL access to an S3 bucket.

    Attributes:
        bucket: Name of the bucket holding uploaded files
        upload_expiration: Lifetime of upload tickets in seconds
        download_expiration: Lifetime of download URLs in seconds
    """

    def __init__(
        self,
        bucket: str,
        upload_expiration: int = 900,
        download_expiration: int = 3600,
        client: Optional[Any] = None,
    ) -> None:
        self.bucket = bucket
        self.upload_expiration = upload_expiration
        self.download_expiration = download_expiration
        self._client = client

    def _get_client(self) -> Any:
        """
        Get or create the S3 client.

        Raises:
            TransportFailure: If no bucket is configured or the client cannot be built
        """
        if not self.bucket:
            raise TransportFailure("File storage is not configured (S3_BUCKET_NAME is empty)")
        if self._client is None:
            try:
                self._client = boto3.client("s3")
            except BotoCoreError as exc:
                raise TransportFailure(f"Failed to create S3 client: {exc}") from exc
        return self._client

    def request_upload_ticket(self, owner_id: str, file_name: str, file_size_bytes: int) -> UploadTicket:
        """
        Validate upload metadata and issue a presigned POST for it.

        This is the authoritative validation point: the client may have
        checked the file already, but that check is not trusted. The key is
        placed under the owner's upload_prefix.

        Raises:
            ValidationError: If the extension or size is not allowed
            TransportFailure: If the ticket cannot be generated
        """
        require_valid_file(file_name, file_size_bytes)

        client = self._get_client()
        file_ref = f"{upload_prefix(owner_id)}{uuid4().hex}/{sanitize_filename(file_name)}"
        try:
            post = client.generate_presigned_post(
                Bucket=self.bucket,
                Key=file_ref,
                Conditions=[["content-length-range", 0, MAX_FILE_SIZE]],
                ExpiresIn=self.upload_expiration,
            )
        except (ClientError, BotoCoreError) as exc:
            logger.error("Failed to generate upload ticket for %s: %s", file_name, exc)
            raise TransportFailure(f"Could not create upload ticket: {exc}") from exc

        logger.info("Issued upload ticket %s (%d bytes declared)", file_ref, file_size_bytes)
        return UploadTicket(
            file_ref=file_ref,
            url=post["url"],
            fields=post.get("fields", {}),
            expires_in=self.upload_expiration,
            allowed_content_types=list(ALLOWED_MIME_TYPES),
        )

    def confirm_upload(self, file_ref: str) -> int:
        """
        Check that an uploaded object exists.

        Returns:
            Size of the stored object in bytes

        Raises:
            TransportFailure: If the object is missing or the store cannot be reached
        """
        client = self._get_client()
        try:
            head = client.head_object(Bucket=self.bucket, Key=file_ref)
        except ClientError as exc:
            if _is_missing(exc):
                raise TransportFailure(f"Upload '{file_ref}' was not found in storage") from exc
            logger.error("Failed to confirm upload %s: %s", file_ref, exc)
            raise TransportFailure(f"Could not confirm upload: {exc}") from exc
        except BotoCoreError as exc:
            logger.error("Failed to confirm upload %s: %s", file_ref, exc)
            raise TransportFailure(f"Could not confirm upload: {exc}") from exc
        return int(head.get("ContentLength", 0))

    def get_file_url(self, file_ref: str) -> str:
        """
        Generate a presigned download URL for a stored file.

        Raises:
            NotFoundError: If the object does not exist
            TransportFailure: If the store cannot be reached
        """
        client = self._get_client()
        try:
            client.head_object(Bucket=self.bucket, Key=file_ref)
            url = client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": file_ref},
                ExpiresIn=self.download_expiration,
            )
        except ClientError as exc:
            if _is_missing(exc):
                raise NotFoundError("File", file_ref) from exc
            logger.error("Failed to generate presigned URL for %s: %s", file_ref, exc)
            raise TransportFailure(f"Could not create download URL: {exc}") from exc
        except BotoCoreError as exc:
            logger.error("Failed to generate presigned URL for %s: %s", file_ref, exc)
            raise TransportFailure(f"Could not create download URL: {exc}") from exc

        logger.info("Generated presigned URL for %s (expires in %ss)", file_ref, self.download_expiration)
        return url

    def delete_file(self, file_ref: str) -> None:
        """
        Delete a stored file. Job records that point at it are left untouched.

        Raises:
            TransportFailure: If the delete request fails
        """
        client = self._get_client()
        try:
            client.delete_object(Bucket=self.bucket, Key=file_ref)
        except (ClientError, BotoCoreError) as exc:
            logger.error("Failed to delete %s: %s", file_ref, exc)
            raise TransportFailure(f"Could not delete file: {exc}") from exc
        logger.info("Deleted file %s", file_ref)
