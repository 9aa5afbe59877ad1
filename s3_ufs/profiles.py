from __future__ import annotations
"""Saved connection profiles with secrets kept in the OS keychain."""
from dataclasses import dataclass
import json
import logging
from pathlib import Path
from typing import Optional

import keyring
from keyring.errors import KeyringError

LOGGER = logging.getLogger(__name__)


@dataclass
class ConnectionProfile:
    """Named credentials for an object store endpoint."""

    name: str
    access_key: str
    secret_key: str = ""
    endpoint_url: str = ""
    region_name: str = ""

    def public_fields(self) -> dict[str, str]:
        return {
            "name": self.name,
            "access_key": self.access_key,
            "endpoint_url": self.endpoint_url,
            "region_name": self.region_name,
        }


class KeychainStore:
    """Secret lookups against the OS keychain; failures read as "no secret"."""

    def __init__(self, service_name: str = "s3_ufs"):
        self._service_name = service_name

    def get_secret(self, profile_name: str) -> str:
        if not profile_name:
            return ""
        try:
            return keyring.get_password(self._service_name, profile_name) or ""
        except KeyringError as exc:
            LOGGER.warning("Keychain lookup failed for profile %s: %s", profile_name, exc)
            return ""

    def set_secret(self, profile_name: str, secret_key: str) -> None:
        if not profile_name:
            return
        if not secret_key:
            self.delete_secret(profile_name)
            return
        try:
            keyring.set_password(self._service_name, profile_name, secret_key)
        except KeyringError as exc:
            LOGGER.warning("Unable to store secret for profile %s: %s", profile_name, exc)

    def delete_secret(self, profile_name: str) -> None:
        if not profile_name:
            return
        try:
            keyring.delete_password(self._service_name, profile_name)
        except KeyringError:
            return


class ProfileStorage:
    """JSON file of connection profiles; secret keys live in the keychain.

    Plaintext ``secret_key`` entries found in the file are moved into the
    keychain and scrubbed from the file on the next load.
    """

    def __init__(self, storage_path: str | Path | None = None, keychain: KeychainStore | None = None):
        if storage_path is None:
            storage_path = Path.home() / ".s3_ufs_profiles.json"
        self._path = Path(storage_path)
        self._keychain = keychain or KeychainStore()

    def load(self) -> list[ConnectionProfile]:
        entries = self._read_entries()
        profiles: list[ConnectionProfile] = []
        migrated = False
        for entry in entries:
            name = entry.get("name")
            access_key = entry.get("access_key")
            if not isinstance(name, str) or not name or not isinstance(access_key, str):
                continue
            secret_key = entry.get("secret_key") or ""
            if secret_key:
                migrated = True
                self._keychain.set_secret(name, secret_key)
            else:
                secret_key = self._keychain.get_secret(name)
            profiles.append(
                ConnectionProfile(
                    name=name,
                    access_key=access_key,
                    secret_key=secret_key,
                    endpoint_url=entry.get("endpoint_url") or "",
                    region_name=entry.get("region_name") or "",
                )
            )
        if migrated:
            self._write_entries([profile.public_fields() for profile in profiles])
        return profiles

    def find(self, name: str) -> Optional[ConnectionProfile]:
        for profile in self.load():
            if profile.name == name:
                return profile
        return None

    def save(self, profiles: list[ConnectionProfile]) -> None:
        previous = {entry.get("name") for entry in self._read_entries()}
        for profile in profiles:
            self._keychain.set_secret(profile.name, profile.secret_key)
        for name in previous - {profile.name for profile in profiles}:
            if isinstance(name, str) and name:
                self._keychain.delete_secret(name)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._write_entries([profile.public_fields() for profile in profiles])

    def _read_entries(self) -> list[dict]:
        if not self._path.exists():
            return []
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return []
        if not isinstance(data, list):
            return []
        return [entry for entry in data if isinstance(entry, dict)]

    def _write_entries(self, data: list[dict[str, str]]) -> None:
        self._path.write_text(json.dumps(data, indent=2), encoding="utf-8")
