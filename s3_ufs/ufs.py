from __future__ import annotations
"""Hierarchical filesystem view over a flat object store."""
import base64
import hashlib
import logging
from datetime import datetime
from typing import BinaryIO, Optional

from .errors import PathNotFoundError, StoreError
from .keys import SEPARATOR, KeyTranslator, is_folder_marker, strip_folder_suffix
from .listing import ListingIterator
from .models import Lookup, MountIdentity, ObjectMetadata
from .permissions import synthesize_identity
from .settings import AdapterSettings
from .store import ObjectStore, build_s3_store
from .streams import ObjectWriteSink

LOGGER = logging.getLogger(__name__)

# Content-MD5 of an empty body, sent with every folder marker.
DIR_HASH = base64.b64encode(hashlib.md5(b"").digest()).decode("ascii")
MARKER_CONTENT_TYPE = "application/octet-stream"


class S3UnderFileSystem:
    """Presents a bucket as a directory tree.

    Directories are zero-length ``_$folder$`` marker objects. Paths that only
    exist because some descendant object was written are detected through a
    prefix listing and get their marker written on first sight, so later
    checks cost a single metadata fetch.

    After construction the adapter only holds read-only state and can be
    shared between threads; listing iterators cannot.
    """

    def __init__(self, store: ObjectStore, settings: AdapterSettings):
        self._store = store
        self._settings = settings
        self._keys = KeyTranslator(settings.bucket)
        self._identity = synthesize_identity(
            store,
            self._keys.root_key,
            inherit_acl=settings.inherit_acl,
            owner_mapping=settings.owner_id_to_username_mapping,
        )

    @classmethod
    def create(cls, settings: AdapterSettings, **store_options) -> "S3UnderFileSystem":
        """Build the boto3 store for ``settings`` and mount it."""

        return cls(build_s3_store(settings, **store_options), settings)

    @property
    def keys(self) -> KeyTranslator:
        return self._keys

    @property
    def root_key(self) -> str:
        return self._keys.root_key

    @property
    def identity(self) -> MountIdentity:
        return self._identity

    # Existence

    def exists(self, path: str) -> bool:
        return self.is_file(path) or self.is_directory(path)

    def is_file(self, path: str) -> bool:
        if self._keys.is_root(path):
            return False
        return self._store.head_object(self._keys.to_key(path)).is_found

    def is_directory(self, path: str) -> bool:
        if self._keys.is_root(path):
            return True
        return self._folder_lookup(path).is_found

    def _folder_lookup(self, path: str) -> Lookup:
        folder_key = self._keys.to_folder_key(path)
        lookup = self._store.head_object(folder_key)
        if lookup.is_found:
            return lookup
        if not self._has_descendants(path):
            return lookup

        # Implicit directory; materialize its marker.
        if self.create_marker(folder_key):
            materialized = self._store.head_object(folder_key)
            if materialized.is_found:
                return materialized
        return Lookup.found(ObjectMetadata(key=folder_key))

    def _has_descendants(self, path: str) -> bool:
        prefix = self._keys.to_directory_prefix(path)
        try:
            page = self._store.list_objects(prefix, max_keys=1)
        except StoreError as exc:
            LOGGER.debug("Unable to list %s while probing for a directory: %s", prefix, exc)
            return False
        return bool(page.names or page.prefixes)

    # Metadata

    def get_status(self, path: str) -> ObjectMetadata:
        """Metadata of the file at ``path``, else of its folder marker."""

        if self._keys.is_root(path):
            raise PathNotFoundError(path)
        lookup = self._store.head_object(self._keys.to_key(path))
        if lookup.is_found:
            return lookup.metadata
        lookup = self._folder_lookup(path)
        if lookup.is_found:
            return lookup.metadata
        raise PathNotFoundError(path)

    def get_size(self, path: str) -> int:
        return self.get_status(path).size

    def get_modified_time(self, path: str) -> Optional[datetime]:
        return self.get_status(path).last_modified

    def get_owner(self, path: str) -> str:
        return self._identity.owner

    def get_group(self, path: str) -> str:
        # S3 has no groups; the owner doubles as group.
        return self._identity.owner

    def get_mode(self, path: str) -> int:
        return self._identity.mode

    def set_owner(self, path: str, user: str | None = None, group: str | None = None) -> None:
        """Not supported by the object store; no-op."""

    def set_mode(self, path: str, mode: int) -> None:
        """Not supported by the object store; no-op."""

    # Streams

    def open(self, path: str) -> Optional[BinaryIO]:
        return self.open_at(path, 0)

    def open_at(self, path: str, offset: int) -> Optional[BinaryIO]:
        key = self._keys.to_key(path)
        try:
            return self._store.get_object(key, offset)
        except StoreError as exc:
            LOGGER.error("Failed to open file %s at position %d: %s", key, offset, exc, exc_info=True)
            return None

    def create_write_sink(self, path: str) -> ObjectWriteSink:
        return ObjectWriteSink(self._store, self._keys.to_key(path))

    # Mutations

    def copy(self, src: str, dst: str) -> bool:
        src_key = self._keys.to_key(src)
        dst_key = self._keys.to_key(dst)
        LOGGER.debug("Copying %s to %s", src_key, dst_key)
        retries = self._settings.copy_retries
        for attempt in range(1, retries + 1):
            try:
                self._store.copy_object(
                    src_key,
                    dst_key,
                    encrypt=self._settings.server_side_encryption,
                )
                return True
            except StoreError as exc:
                LOGGER.error("Failed to copy file %s to %s: %s", src_key, dst_key, exc, exc_info=True)
                if attempt < retries:
                    LOGGER.warning("Retrying copying file %s to %s (%d/%d)", src_key, dst_key, attempt + 1, retries)
        LOGGER.error("Failed to copy file %s to %s, after %d retries", src_key, dst_key, retries)
        return False

    def rename(self, src: str, dst: str) -> bool:
        """Copy ``src`` to ``dst`` and delete ``src``. Not atomic."""

        if not self.copy(src, dst):
            return False
        return self.delete(src)

    def delete(self, path: str) -> bool:
        if self._keys.is_root(path):
            LOGGER.error("Refusing to delete the root of %s", self.root_key)
            return False
        return self._delete_key(self._keys.to_key(path))

    def _delete_key(self, key: str) -> bool:
        try:
            self._store.delete_object(key)
        except StoreError as exc:
            LOGGER.error("Failed to delete %s: %s", key, exc, exc_info=True)
            return False
        return True

    def delete_directory(self, path: str, *, recursive: bool = False) -> bool:
        """Delete a directory marker, and with ``recursive`` every key below it.

        A non-recursive delete of a directory that still has children fails.
        The root itself is never deleted, only its contents. Nothing is
        deleted when the listing of the directory fails part way.
        """

        is_root = self._keys.is_root(path)
        dir_key = self._keys.to_key(path)
        if not recursive:
            listing = self.new_listing(path)
            children = self._collect_children(listing)
            if listing.failed:
                LOGGER.error("Unable to list directory %s, keeping it", dir_key)
                return False
            if children:
                LOGGER.error("Directory %s is not empty", dir_key)
                return False
            return True if is_root else self._delete_key(self._keys.to_folder_key(path))

        listing = self.new_listing(path, recursive=True)
        keys = [name for page in listing for name in page.names]
        if listing.failed:
            LOGGER.error("Unable to list directory %s, keeping it", dir_key)
            return False
        success = True
        for key in keys:
            success = self._delete_key(key) and success
        folder_key = self._keys.to_folder_key(path)
        if not is_root and folder_key not in keys:
            success = self._delete_key(folder_key) and success
        return success

    def mkdir(self, path: str) -> bool:
        if self._keys.is_root(path):
            return True
        return self.create_marker(self._keys.to_folder_key(path))

    def mkdirs(self, path: str) -> bool:
        """Create ``path`` and every missing ancestor directory."""

        key = self._keys.to_key(path).rstrip(SEPARATOR)
        if not key:
            return True
        parts = key.split(SEPARATOR)
        for depth in range(1, len(parts) + 1):
            current = SEPARATOR.join(parts[:depth])
            if self.is_directory(current):
                continue
            if self.is_file(current):
                LOGGER.error("Cannot create directory %s: %s is a file", key, current)
                return False
            if not self.mkdir(current):
                return False
        return True

    def create_marker(self, key: str) -> bool:
        try:
            self._store.put_object(
                key,
                b"",
                content_md5=DIR_HASH,
                content_type=MARKER_CONTENT_TYPE,
            )
        except StoreError as exc:
            LOGGER.error("Failed to create object: %s: %s", key, exc, exc_info=True)
            return False
        return True

    # Listing

    def new_listing(self, path: str, recursive: bool = False) -> ListingIterator:
        return ListingIterator(
            self._store,
            self._keys.to_directory_prefix(path),
            recursive=recursive,
            page_size=self._settings.listing_page_size,
        )

    def list_children(self, path: str, recursive: bool = False) -> list[str]:
        """Names below ``path``, relative to it, folder markers shown as directories."""

        return self._collect_children(self.new_listing(path, recursive))

    def _collect_children(self, listing: ListingIterator) -> list[str]:
        prefix = listing.prefix
        children: list[str] = []
        seen: set[str] = set()

        def add(name: str) -> None:
            if name and name not in seen:
                seen.add(name)
                children.append(name)

        for page in listing:
            for entry in page.names + page.prefixes:
                child = entry[len(prefix):] if entry.startswith(prefix) else entry
                if is_folder_marker(child):
                    child = strip_folder_suffix(child)
                child = child.rstrip(SEPARATOR)
                if listing.recursive:
                    parts = child.split(SEPARATOR)
                    for depth in range(1, len(parts)):
                        add(SEPARATOR.join(parts[:depth]))
                add(child)
        return children
