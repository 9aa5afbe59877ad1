from __future__ import annotations
"""Ordered credential resolution for the S3 backend."""
from dataclasses import dataclass
import logging
from typing import Mapping, Optional, Protocol, Sequence

from botocore.credentials import EnvProvider, InstanceMetadataFetcher, InstanceMetadataProvider

from .errors import CredentialsNotFoundError
from .profiles import ProfileStorage
from .settings import AdapterSettings

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class Credentials:
    access_key: str
    secret_key: str
    session_token: Optional[str] = None
    source: str = ""


class CredentialsProvider(Protocol):
    name: str

    def load(self) -> Optional[Credentials]: ...


class EnvironmentCredentialsProvider:
    """``AWS_ACCESS_KEY_ID`` and friends, read through botocore."""

    name = "environment"

    def __init__(self, environ: Mapping[str, str] | None = None, provider=None):
        self._provider = provider or EnvProvider(environ=environ)

    def load(self) -> Optional[Credentials]:
        loaded = self._provider.load()
        if loaded is None:
            return None
        frozen = loaded.get_frozen_credentials()
        return Credentials(
            access_key=frozen.access_key,
            secret_key=frozen.secret_key,
            session_token=frozen.token,
            source=self.name,
        )


class ExplicitCredentialsProvider:
    name = "settings"

    def __init__(self, settings: AdapterSettings):
        self._settings = settings

    def load(self) -> Optional[Credentials]:
        if not self._settings.access_key or not self._settings.secret_key:
            return None
        return Credentials(
            access_key=self._settings.access_key,
            secret_key=self._settings.secret_key,
            source=self.name,
        )


class ProfileCredentialsProvider:
    name = "profile"

    def __init__(self, profile_name: str, storage: ProfileStorage | None = None):
        self._profile_name = profile_name
        self._storage = storage or ProfileStorage()

    def load(self) -> Optional[Credentials]:
        if not self._profile_name:
            return None
        profile = self._storage.find(self._profile_name)
        if profile is None or not profile.secret_key:
            return None
        return Credentials(
            access_key=profile.access_key,
            secret_key=profile.secret_key,
            source=f"{self.name}:{profile.name}",
        )


class InstanceIdentityCredentialsProvider:
    """Credentials of the IAM role attached to the running instance."""

    name = "instance"

    def __init__(self, provider=None):
        self._provider = provider or InstanceMetadataProvider(
            iam_role_fetcher=InstanceMetadataFetcher(timeout=1, num_attempts=1)
        )

    def load(self) -> Optional[Credentials]:
        loaded = self._provider.load()
        if loaded is None:
            return None
        frozen = loaded.get_frozen_credentials()
        return Credentials(
            access_key=frozen.access_key,
            secret_key=frozen.secret_key,
            session_token=frozen.token,
            source=self.name,
        )


class CredentialChain:
    """Tries each provider in order until one yields credentials."""

    def __init__(self, providers: Sequence[CredentialsProvider]):
        self._providers = list(providers)

    @property
    def providers(self) -> list[CredentialsProvider]:
        return list(self._providers)

    def resolve(self) -> Credentials:
        for provider in self._providers:
            try:
                credentials = provider.load()
            except Exception as exc:  # a broken provider must not end the chain
                LOGGER.warning("Credentials provider %s failed: %s", provider.name, exc)
                continue
            if credentials is not None:
                return credentials
        names = ", ".join(provider.name for provider in self._providers)
        raise CredentialsNotFoundError(f"No credentials found (tried: {names})")


def default_chain(settings: AdapterSettings, *, profiles: ProfileStorage | None = None) -> CredentialChain:
    return CredentialChain(
        [
            EnvironmentCredentialsProvider(),
            ExplicitCredentialsProvider(settings),
            ProfileCredentialsProvider(settings.profile_name, profiles),
            InstanceIdentityCredentialsProvider(),
        ]
    )
