from __future__ import annotations
"""Translation between hierarchical paths and flat object keys."""

SEPARATOR = "/"
FOLDER_SUFFIX = "_$folder$"
ROOT_SCHEME = "s3a://"
ACCEPTED_SCHEMES = ("s3a://", "s3n://", "s3://")


class KeyTranslator:
    """Maps paths under a mounted bucket to object keys.

    Paths may be given either as full URIs (``s3a://bucket/a/b``) or as
    bucket-relative paths (``/a/b`` or ``a/b``). Keys never carry a leading
    separator or the scheme and bucket.
    """

    def __init__(self, bucket: str):
        if not bucket:
            raise ValueError("bucket must not be empty")
        self._bucket = bucket
        self._mount_prefixes = tuple(scheme + bucket for scheme in ACCEPTED_SCHEMES)

    @property
    def bucket(self) -> str:
        return self._bucket

    @property
    def root_key(self) -> str:
        return ROOT_SCHEME + self._bucket

    def to_key(self, path: str) -> str:
        key = path or ""
        while True:
            stripped = key.lstrip(SEPARATOR)
            for prefix in self._mount_prefixes:
                if stripped == prefix or stripped.startswith(prefix + SEPARATOR):
                    stripped = stripped[len(prefix):]
                    break
            if stripped == key:
                return key
            key = stripped

    def is_root(self, path: str) -> bool:
        return self.to_key(path).rstrip(SEPARATOR) == ""

    def to_folder_key(self, path: str) -> str:
        return self.to_key(path).rstrip(SEPARATOR) + SEPARATOR + FOLDER_SUFFIX

    def to_directory_prefix(self, path: str) -> str:
        key = self.to_key(path).rstrip(SEPARATOR)
        if not key:
            return ""
        return key + SEPARATOR

    def to_uri(self, path: str) -> str:
        key = self.to_key(path)
        return f"{self.root_key}{SEPARATOR}{key}"


def is_folder_marker(key: str) -> bool:
    return key == FOLDER_SUFFIX or key.endswith(SEPARATOR + FOLDER_SUFFIX)


def strip_folder_suffix(key: str) -> str:
    """Return the directory key a folder marker stands for."""

    if is_folder_marker(key):
        return key[: -len(FOLDER_SUFFIX)].rstrip(SEPARATOR)
    return key
