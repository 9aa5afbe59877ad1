from __future__ import annotations
"""Paginated prefix listings over an object store."""
import logging
from typing import Iterator, Optional

from .errors import StoreError
from .keys import SEPARATOR
from .models import ListingPage

LOGGER = logging.getLogger(__name__)

LISTING_LENGTH = 1000


class ListingIterator:
    """Single-use cursor over one listing request.

    Non-recursive listings pass ``/`` as delimiter so deeper keys come back
    grouped as common prefixes. :meth:`next_page` returns ``None`` once the
    previous page was not truncated, or when a request fails; after that it
    keeps returning ``None``. A failed request also sets :attr:`failed`, so
    callers acting on the complete listing can tell it apart from exhaustion.
    Instances keep a continuation cursor and must not be shared between
    threads.
    """

    def __init__(self, store, prefix: str, *, recursive: bool = False, page_size: int = LISTING_LENGTH):
        self._store = store
        self._prefix = prefix
        self._delimiter = "" if recursive else SEPARATOR
        self._page_size = max(int(page_size), 1)
        self._token: Optional[str] = None
        self._page_number = 0
        self._done = False
        self._failed = False

    @property
    def prefix(self) -> str:
        return self._prefix

    @property
    def recursive(self) -> bool:
        return not self._delimiter

    @property
    def exhausted(self) -> bool:
        return self._done

    @property
    def failed(self) -> bool:
        return self._failed

    def next_page(self) -> Optional[ListingPage]:
        if self._done:
            return None
        try:
            page = self._store.list_objects(
                self._prefix,
                delimiter=self._delimiter,
                max_keys=self._page_size,
                continuation_token=self._token,
            )
        except StoreError as exc:
            LOGGER.error("Failed to list path %s: %s", self._prefix, exc, exc_info=True)
            self._done = True
            self._failed = True
            return None

        self._page_number += 1
        page.number = self._page_number
        if page.truncated and page.continuation_token:
            self._token = page.continuation_token
        else:
            if page.truncated:
                LOGGER.warning("Listing of %s truncated without a continuation token", self._prefix)
            self._done = True
        return page

    def __iter__(self) -> Iterator[ListingPage]:
        while True:
            page = self.next_page()
            if page is None:
                return
            yield page
