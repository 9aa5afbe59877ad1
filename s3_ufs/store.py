from __future__ import annotations
"""Object store capability interface and its boto3-backed implementation."""
from contextlib import contextmanager
import logging
from typing import BinaryIO, Callable, Iterator, Optional, Protocol

import boto3
from boto3.s3.transfer import TransferConfig
from botocore.exceptions import BotoCoreError, ClientError

from .credentials import CredentialChain, default_chain
from .errors import StoreError
from .models import ListingPage, Lookup, ObjectMetadata
from .settings import AdapterSettings

LOGGER = logging.getLogger(__name__)

MISSING_CODES = {"404", "NoSuchKey", "NotFound"}


class ObjectStore(Protocol):
    """The narrow set of object store calls the adapter is written against.

    Every method other than :meth:`head_object` raises :class:`StoreError`
    when the store cannot satisfy the request.
    """

    def head_object(self, key: str) -> Lookup: ...

    def list_objects(
        self,
        prefix: str,
        *,
        delimiter: str = "",
        max_keys: int = 1000,
        continuation_token: str | None = None,
    ) -> ListingPage: ...

    def put_object(
        self,
        key: str,
        body: bytes = b"",
        *,
        content_md5: str | None = None,
        content_type: str | None = None,
    ) -> None: ...

    def upload_fileobj(self, key: str, fileobj: BinaryIO) -> None: ...

    def get_object(self, key: str, offset: int = 0) -> BinaryIO: ...

    def delete_object(self, key: str) -> None: ...

    def copy_object(self, src: str, dst: str, *, encrypt: bool = False) -> None: ...

    def get_bucket_acl(self) -> list[dict]: ...

    def get_account_identity(self) -> tuple[str, Optional[str]]: ...


@contextmanager
def _store_errors(operation: str, key: str = "") -> Iterator[None]:
    try:
        yield
    except (ClientError, BotoCoreError) as exc:
        raise StoreError(f"{operation} failed for {key!r}: {exc}") from exc


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


class S3ObjectStore:
    """:class:`ObjectStore` over a boto3 S3 client bound to one bucket."""

    def __init__(
        self,
        client,
        bucket: str,
        *,
        multipart_copy_threshold: int = 100 * 1024 * 1024,
        legacy_listing: bool = False,
        transfer_config_factory: Callable[..., object] | None = None,
    ):
        self._client = client
        self._bucket = bucket
        self._legacy_listing = legacy_listing
        factory = transfer_config_factory or TransferConfig
        self._copy_config = factory(multipart_threshold=multipart_copy_threshold)

    @property
    def bucket(self) -> str:
        return self._bucket

    def head_object(self, key: str) -> Lookup:
        try:
            response = self._client.head_object(Bucket=self._bucket, Key=key)
        except ClientError as exc:
            if _error_code(exc) in MISSING_CODES:
                return Lookup.not_found()
            return Lookup.failed(str(exc))
        except BotoCoreError as exc:
            return Lookup.failed(str(exc))
        return Lookup.found(
            ObjectMetadata(
                key=key,
                size=int(response.get("ContentLength") or 0),
                last_modified=response.get("LastModified"),
                etag=response.get("ETag"),
                content_type=response.get("ContentType"),
            )
        )

    def list_objects(
        self,
        prefix: str,
        *,
        delimiter: str = "",
        max_keys: int = 1000,
        continuation_token: str | None = None,
    ) -> ListingPage:
        list_params = {"Bucket": self._bucket, "MaxKeys": max_keys}
        if prefix:
            list_params["Prefix"] = prefix
        if delimiter:
            list_params["Delimiter"] = delimiter

        if self._legacy_listing:
            if continuation_token:
                list_params["Marker"] = continuation_token
            with _store_errors("ListObjects", prefix):
                response = self._client.list_objects(**list_params)
        else:
            if continuation_token:
                list_params["ContinuationToken"] = continuation_token
            with _store_errors("ListObjectsV2", prefix):
                response = self._client.list_objects_v2(**list_params)

        names = [obj["Key"] for obj in response.get("Contents", [])]
        prefixes = [common["Prefix"] for common in response.get("CommonPrefixes", [])]
        truncated = bool(response.get("IsTruncated", False))
        if self._legacy_listing:
            next_token = response.get("NextMarker")
            if truncated and not next_token:
                # NextMarker is only returned with a delimiter; resume after the last entry.
                candidates = names[-1:] + prefixes[-1:]
                next_token = max(candidates) if candidates else None
        else:
            next_token = response.get("NextContinuationToken")
        return ListingPage(
            number=0,
            names=names,
            prefixes=prefixes,
            continuation_token=next_token if truncated else None,
            truncated=truncated,
        )

    def put_object(
        self,
        key: str,
        body: bytes = b"",
        *,
        content_md5: str | None = None,
        content_type: str | None = None,
    ) -> None:
        params = {
            "Bucket": self._bucket,
            "Key": key,
            "Body": body,
            "ContentLength": len(body),
        }
        if content_md5:
            params["ContentMD5"] = content_md5
        if content_type:
            params["ContentType"] = content_type
        with _store_errors("PutObject", key):
            self._client.put_object(**params)

    def upload_fileobj(self, key: str, fileobj: BinaryIO) -> None:
        with _store_errors("Upload", key):
            self._client.upload_fileobj(fileobj, self._bucket, key)

    def get_object(self, key: str, offset: int = 0) -> BinaryIO:
        params = {"Bucket": self._bucket, "Key": key}
        if offset > 0:
            params["Range"] = f"bytes={offset}-"
        with _store_errors("GetObject", key):
            response = self._client.get_object(**params)
        return response["Body"]

    def delete_object(self, key: str) -> None:
        with _store_errors("DeleteObject", key):
            self._client.delete_object(Bucket=self._bucket, Key=key)

    def copy_object(self, src: str, dst: str, *, encrypt: bool = False) -> None:
        extra_args = {"ServerSideEncryption": "AES256"} if encrypt else None
        with _store_errors("CopyObject", src):
            self._client.copy(
                {"Bucket": self._bucket, "Key": src},
                self._bucket,
                dst,
                ExtraArgs=extra_args,
                Config=self._copy_config,
            )

    def get_bucket_acl(self) -> list[dict]:
        with _store_errors("GetBucketAcl", self._bucket):
            response = self._client.get_bucket_acl(Bucket=self._bucket)
        return list(response.get("Grants", []))

    def get_account_identity(self) -> tuple[str, Optional[str]]:
        with _store_errors("ListBuckets"):
            response = self._client.list_buckets()
        owner = response.get("Owner") or {}
        owner_id = owner.get("ID")
        if not owner_id:
            raise StoreError("account owner id missing from ListBuckets response")
        return owner_id, owner.get("DisplayName")


def build_s3_store(
    settings: AdapterSettings,
    *,
    client_factory: Callable[..., object] | None = None,
    credential_chain: CredentialChain | None = None,
) -> S3ObjectStore:
    """Resolve credentials and build an :class:`S3ObjectStore` for ``settings``."""

    if not settings.bucket:
        raise ValueError("settings.bucket is required")
    chain = credential_chain or default_chain(settings)
    credentials = chain.resolve()
    LOGGER.debug("Using credentials from %s for bucket %s", credentials.source, settings.bucket)

    factory = client_factory or boto3.client
    client_params = {
        "aws_access_key_id": credentials.access_key,
        "aws_secret_access_key": credentials.secret_key,
        "config": settings.client_config(),
        "use_ssl": settings.secure_http,
    }
    if credentials.session_token:
        client_params["aws_session_token"] = credentials.session_token
    if settings.endpoint_url:
        client_params["endpoint_url"] = settings.endpoint_url
    if settings.region_name:
        client_params["region_name"] = settings.region_name
    client = factory("s3", **client_params)
    return S3ObjectStore(
        client,
        settings.bucket,
        multipart_copy_threshold=settings.multipart_copy_threshold,
        legacy_listing=settings.legacy_listing,
    )
