from __future__ import annotations
"""Object store primitives backed by the boto3 S3 client."""
from contextlib import contextmanager
import logging
from typing import Callable, Iterator, Sequence

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from .errors import IntegrityError, TransportError
from .models import CompletedPart
from .settings import ObsSettings

LOGGER = logging.getLogger(__name__)


def build_range_header(start: int, length: int) -> str:
    return f"bytes={start}-{start + length - 1}"


@contextmanager
def _translate_errors(operation: str, bucket: str, key: str) -> Iterator[None]:
    try:
        yield
    except ClientError as exc:
        error = exc.response.get("Error", {})
        raise TransportError(
            operation,
            bucket=bucket,
            key=key,
            code=error.get("Code") or str(exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode", "")),
            message=error.get("Message") or str(exc),
        ) from exc
    except BotoCoreError as exc:
        raise TransportError(operation, bucket=bucket, key=key, message=str(exc)) from exc


class ObsTransport:
    """Blocking wrapper over the S3 calls the filesystem layer needs.

    Every method raises :class:`TransportError` when the store reports a
    failure; botocore retries transient failures up to
    ``settings.max_attempts`` before that happens.
    """

    def __init__(
        self,
        settings: ObsSettings,
        client_factory: Callable[..., object] | None = None,
    ):
        self._settings = settings
        self._client_factory = client_factory or boto3.client
        self._client = self._create_client()

    @property
    def settings(self) -> ObsSettings:
        return self._settings

    def _create_client(self):
        config = Config(
            signature_version="s3v4",
            retries={"max_attempts": self._settings.max_attempts, "mode": "standard"},
        )
        return self._client_factory(
            "s3",
            endpoint_url=self._settings.endpoint,
            aws_access_key_id=self._settings.access_key,
            aws_secret_access_key=self._settings.secret_key,
            region_name=self._settings.region,
            config=config,
        )

    def list_keys(
        self,
        bucket: str,
        prefix: str,
        *,
        marker: str = "",
        delimiter: str = "/",
        max_keys: int = 1000,
    ) -> dict:
        """Return one raw ``ListObjects`` page."""

        params = {"Bucket": bucket, "Prefix": prefix, "MaxKeys": max_keys}
        if delimiter:
            params["Delimiter"] = delimiter
        if marker:
            params["Marker"] = marker
        LOGGER.debug("list_objects bucket=%s prefix=%s marker=%s", bucket, prefix, marker)
        with _translate_errors("list", bucket, prefix):
            return self._client.list_objects(**params)

    def get_range(self, bucket: str, key: str, start: int, length: int) -> bytes:
        LOGGER.debug("get_object %s/%s range %d+%d", bucket, key, start, length)
        with _translate_errors("get", bucket, key):
            response = self._client.get_object(
                Bucket=bucket,
                Key=key,
                Range=build_range_header(start, length),
            )
            body = response["Body"]
            try:
                return body.read()
            finally:
                body.close()

    def initiate_multipart_upload(self, bucket: str, key: str) -> str:
        with _translate_errors("init upload part for", bucket, key):
            response = self._client.create_multipart_upload(Bucket=bucket, Key=key)
        upload_id = response.get("UploadId")
        if not upload_id:
            raise IntegrityError(
                "init upload part for", bucket=bucket, key=key, message="no upload id returned"
            )
        LOGGER.debug("initiated upload %s for %s/%s", upload_id, bucket, key)
        return upload_id

    def upload_part(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        part_number: int,
        data: bytes,
    ) -> str:
        """Upload one part and return its ETag (possibly empty)."""

        LOGGER.debug("upload part %d (%d bytes) for %s/%s", part_number, len(data), bucket, key)
        with _translate_errors(f"upload part {part_number}", bucket, key):
            response = self._client.upload_part(
                Bucket=bucket,
                Key=key,
                UploadId=upload_id,
                PartNumber=part_number,
                Body=data,
            )
        return response.get("ETag") or ""

    def complete_multipart_upload(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        parts: Sequence[CompletedPart],
    ) -> None:
        LOGGER.debug("complete upload %s for %s/%s with %d part(s)", upload_id, bucket, key, len(parts))
        with _translate_errors("complete upload for", bucket, key):
            self._client.complete_multipart_upload(
                Bucket=bucket,
                Key=key,
                UploadId=upload_id,
                MultipartUpload={
                    "Parts": [{"PartNumber": part.part_number, "ETag": part.etag} for part in parts]
                },
            )

    def abort_multipart_upload(self, bucket: str, key: str, upload_id: str) -> None:
        LOGGER.debug("abort upload %s for %s/%s", upload_id, bucket, key)
        with _translate_errors("abort upload for", bucket, key):
            self._client.abort_multipart_upload(Bucket=bucket, Key=key, UploadId=upload_id)
