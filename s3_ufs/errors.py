"""Exceptions raised across the adapter boundary."""


class PathNotFoundError(FileNotFoundError):
    """Raised when neither an object nor a folder marker exists for a path."""


class StoreError(RuntimeError):
    """Raised by store backends when a request to the object store fails."""


class CredentialsNotFoundError(RuntimeError):
    """Raised when no credentials provider in the chain yields credentials."""
