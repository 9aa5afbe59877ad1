from __future__ import annotations
"""Adapter settings and their persistence helpers."""

from dataclasses import asdict, dataclass, fields
import json
from pathlib import Path

from botocore.client import Config

MB = 1024 * 1024


@dataclass
class AdapterSettings:
    """Explicit configuration handed to the adapter at construction time."""

    bucket: str = ""
    endpoint_url: str = ""
    region_name: str = ""
    profile_name: str = ""
    access_key: str = ""
    secret_key: str = ""
    listing_page_size: int = 1000
    copy_retries: int = 3
    inherit_acl: bool = False
    owner_id_to_username_mapping: str = ""
    server_side_encryption: bool = False
    path_style_access: bool = False
    secure_http: bool = True
    connect_timeout: int = 60
    read_timeout: int = 50
    proxy: str = ""
    multipart_copy_threshold: int = 100 * MB
    legacy_listing: bool = False

    def client_config(self) -> Config:
        options = {
            "signature_version": "s3v4",
            "connect_timeout": self.connect_timeout,
            "read_timeout": self.read_timeout,
            "s3": {"addressing_style": "path" if self.path_style_access else "auto"},
        }
        if self.proxy:
            options["proxies"] = {"http": self.proxy, "https": self.proxy}
        return Config(**options)


_POSITIVE_INTS = (
    "listing_page_size",
    "copy_retries",
    "connect_timeout",
    "read_timeout",
    "multipart_copy_threshold",
)
_BOOLS = (
    "inherit_acl",
    "server_side_encryption",
    "path_style_access",
    "secure_http",
    "legacy_listing",
)
# Secrets belong in the keychain, never in the settings file.
_NOT_PERSISTED = ("secret_key",)


class SettingsStorage:
    """JSON-backed persistence for :class:`AdapterSettings`."""

    def __init__(self, storage_path: str | Path | None = None):
        if storage_path is None:
            storage_path = Path.home() / ".s3_ufs_settings.json"
        self._path = Path(storage_path)

    def load(self) -> AdapterSettings:
        if not self._path.exists():
            return AdapterSettings()
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return AdapterSettings()
        if not isinstance(data, dict):
            return AdapterSettings()

        defaults = AdapterSettings()
        values = {}
        for declared in fields(AdapterSettings):
            name = declared.name
            if name in _NOT_PERSISTED or name not in data:
                continue
            raw = data[name]
            default = getattr(defaults, name)
            if name in _POSITIVE_INTS:
                values[name] = _positive_int(raw, default)
            elif name in _BOOLS:
                values[name] = raw if isinstance(raw, bool) else default
            else:
                values[name] = raw if isinstance(raw, str) else default
        return AdapterSettings(**values)

    def save(self, settings: AdapterSettings) -> None:
        payload = asdict(settings)
        for name in _NOT_PERSISTED:
            payload.pop(name, None)
        for name in _POSITIVE_INTS:
            payload[name] = max(int(payload[name]), 1)
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError:
            # Persist best-effort; ignore filesystem issues.
            return


def _positive_int(value, default: int) -> int:
    if isinstance(value, bool):
        return default
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    if number <= 0:
        return default
    return number
