from __future__ import annotations

import struct
from typing import List

from .errors import InvalidEncoding, OutOfBounds


U32 = struct.Struct("<I")  # every integer field in a patch is a little-endian u32
NUL = b"\x00"


class ByteCursor:
    """Forward-only reader over an immutable byte buffer.

    ``end`` bounds the readable region (defaults to the buffer length); the
    reader never looks past it.  Reads that would overrun raise
    ``OutOfBounds`` rather than returning padding.
    """

    def __init__(self, data: bytes, offset: int = 0, end: int | None = None) -> None:
        self._data = bytes(data)
        self._end = len(self._data) if end is None else min(end, len(self._data))
        if not (0 <= offset <= self._end):
            raise OutOfBounds(offset, 0, self._end)
        self._offset = offset

    @property
    def offset(self) -> int:
        return self._offset

    @property
    def end(self) -> int:
        return self._end

    @property
    def remaining(self) -> int:
        return self._end - self._offset

    def _take(self, n: int) -> int:
        if n < 0 or n > self.remaining:
            raise OutOfBounds(self._offset, n, self.remaining)
        start = self._offset
        self._offset += n
        return start

    def read_bytes(self, n: int) -> bytes:
        start = self._take(n)
        return self._data[start : start + n]

    def read_u32(self) -> int:
        start = self._take(U32.size)
        return U32.unpack_from(self._data, start)[0]

    def read_u8_array(self, n: int) -> List[int]:
        return list(self.read_bytes(n))

    def read_u32_array(self, n: int) -> List[int]:
        """Read ``n`` consecutive u32 words."""
        start = self._take(n * U32.size)
        return list(struct.unpack_from(f"<{n}I", self._data, start))

    def read_fixed_string(self, n: int) -> str:
        """Read an ``n``-byte NUL-padded UTF-8 field, trimming trailing NULs."""
        start = self._offset
        raw = self.read_bytes(n)
        try:
            return raw.rstrip(NUL).decode("utf-8")
        except UnicodeDecodeError as err:
            raise InvalidEncoding(start, raw) from err
