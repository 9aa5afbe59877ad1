from __future__ import annotations
"""Data models shared by the store backends and the filesystem adapter."""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


@dataclass
class ListingPage:
    """Represents a single page of a prefix listing."""

    number: int
    names: list[str] = field(default_factory=list)
    prefixes: list[str] = field(default_factory=list)
    continuation_token: Optional[str] = None
    truncated: bool = False


@dataclass
class ObjectMetadata:
    """Metadata about a single object, resolved per call."""

    key: str
    size: int = 0
    last_modified: Optional[datetime] = None
    etag: Optional[str] = None
    content_type: Optional[str] = None


class LookupStatus(Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    ERROR = "error"


@dataclass
class Lookup:
    """Outcome of a metadata fetch."""

    status: LookupStatus
    metadata: Optional[ObjectMetadata] = None
    error: Optional[str] = None

    @classmethod
    def found(cls, metadata: ObjectMetadata) -> "Lookup":
        return cls(LookupStatus.FOUND, metadata=metadata)

    @classmethod
    def not_found(cls) -> "Lookup":
        return cls(LookupStatus.NOT_FOUND)

    @classmethod
    def failed(cls, error: str) -> "Lookup":
        return cls(LookupStatus.ERROR, error=error)

    @property
    def is_found(self) -> bool:
        return self.status is LookupStatus.FOUND


@dataclass(frozen=True)
class MountIdentity:
    """Bucket-wide owner and permission mode, computed once per mount."""

    root_key: str
    owner: str = ""
    mode: int = 0o700
