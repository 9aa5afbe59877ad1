from __future__ import annotations
"""Bucket-wide owner and mode synthesis from the bucket ACL."""
import logging
from typing import Iterable, Optional

from .errors import StoreError
from .models import MountIdentity

LOGGER = logging.getLogger(__name__)

DEFAULT_MODE = 0o700
ALL_USERS_URI = "http://acs.amazonaws.com/groups/global/AllUsers"
AUTHENTICATED_USERS_URI = "http://acs.amazonaws.com/groups/global/AuthenticatedUsers"

PERMISSION_BITS = {
    "READ": 0o500,
    "WRITE": 0o200,
    "FULL_CONTROL": 0o700,
}


def parse_static_mapping(mapping: str) -> dict[str, str]:
    """Parse ``"id1=name1;id2=name2"`` into a dict; malformed entries are skipped."""

    result: dict[str, str] = {}
    for entry in (mapping or "").split(";"):
        key, sep, value = entry.partition("=")
        key, value = key.strip(), value.strip()
        if not sep or not key or not value:
            continue
        result[key] = value
    return result


def resolve_owner_name(owner_id: str, display_name: Optional[str], mapping: str = "") -> str:
    owner = parse_static_mapping(mapping).get(owner_id)
    if owner:
        return owner
    if display_name:
        return display_name
    return owner_id


def _grantee_matches(grantee: dict, owner_id: str) -> bool:
    if grantee.get("ID") == owner_id:
        return True
    return grantee.get("URI") in (ALL_USERS_URI, AUTHENTICATED_USERS_URI)


def translate_bucket_acl(grants: Iterable[dict], owner_id: str) -> int:
    """Turn ACL grants that apply to ``owner_id`` into owner mode bits."""

    mode = 0
    for grant in grants:
        if not _grantee_matches(grant.get("Grantee") or {}, owner_id):
            continue
        mode |= PERMISSION_BITS.get(grant.get("Permission", ""), 0)
    return mode


def synthesize_identity(store, root_key: str, *, inherit_acl: bool, owner_mapping: str = "") -> MountIdentity:
    """Compute the :class:`MountIdentity` for a mount.

    Without ACL inheritance the owner is unknown and the mode is rwx for the
    owner. Store failures are logged and fall back to those defaults.
    """

    if not inherit_acl:
        return MountIdentity(root_key=root_key)
    try:
        owner_id, display_name = store.get_account_identity()
        grants = store.get_bucket_acl()
    except StoreError as exc:
        LOGGER.error("Unable to inherit bucket ACL for %s: %s", root_key, exc, exc_info=True)
        return MountIdentity(root_key=root_key)
    owner = resolve_owner_name(owner_id, display_name, owner_mapping)
    mode = translate_bucket_acl(grants, owner_id)
    LOGGER.debug("Mounted %s as owner %s with mode %o", root_key, owner, mode)
    return MountIdentity(root_key=root_key, owner=owner, mode=mode)
