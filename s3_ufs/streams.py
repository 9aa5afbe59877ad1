from __future__ import annotations
"""Writable stream that uploads its content to an object on close."""
import io
import logging
import tempfile

LOGGER = logging.getLogger(__name__)

SPOOL_LIMIT = 8 * 1024 * 1024


class ObjectWriteSink(io.RawIOBase):
    """Buffers writes locally and uploads them to ``key`` when closed.

    Content stays in memory up to ``spool_limit`` bytes and spills to a
    temporary file beyond that. Upload failures surface from :meth:`close`
    as :class:`~s3_ufs.errors.StoreError`.
    """

    def __init__(self, store, key: str, *, spool_limit: int = SPOOL_LIMIT):
        super().__init__()
        self._store = store
        self._key = key
        self._buffer = tempfile.SpooledTemporaryFile(max_size=spool_limit)
        self._size = 0

    @property
    def key(self) -> str:
        return self._key

    @property
    def bytes_written(self) -> int:
        return self._size

    def writable(self) -> bool:
        return True

    def write(self, data) -> int:
        if self.closed:
            raise ValueError("write to closed sink")
        written = self._buffer.write(data)
        self._size += written
        return written

    def close(self) -> None:
        if self.closed:
            return
        try:
            self._buffer.seek(0)
            LOGGER.debug("Uploading %d bytes to %s", self._size, self._key)
            self._store.upload_fileobj(self._key, self._buffer)
        finally:
            self._buffer.close()
            super().close()
