"""Exceptions raised while decoding ZOIA patches.

Every decode failure is a ``PatchDecodeError`` (a ``ValueError``) so callers
can catch one type.  A failure anywhere aborts the decode: later section
offsets are only meaningful if every earlier section decoded cleanly.
"""

from __future__ import annotations


class PatchDecodeError(ValueError):
    """Base class for all patch decoding failures."""


class CatalogError(ValueError):
    """The module catalog document is malformed."""


class OutOfBounds(PatchDecodeError):
    def __init__(self, offset: int, wanted: int, available: int) -> None:
        self.offset = offset
        self.wanted = wanted
        self.available = available
        super().__init__(
            f"read of {wanted} bytes at 0x{offset:04X} overruns data "
            f"({available} bytes available)"
        )


class InvalidEncoding(PatchDecodeError):
    def __init__(self, offset: int, raw: bytes) -> None:
        self.offset = offset
        self.raw = raw
        super().__init__(f"invalid UTF-8 string at 0x{offset:04X}: {raw.hex()}")


class InvalidHeader(PatchDecodeError):
    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"invalid patch header: {reason}")


class InvalidModule(PatchDecodeError):
    def __init__(self, index: int, reason: str) -> None:
        self.index = index
        self.reason = reason
        super().__init__(f"invalid module record {index}: {reason}")


class InvalidModuleType(PatchDecodeError):
    def __init__(self, index: int, type_id: int) -> None:
        self.index = index
        self.type_id = type_id
        super().__init__(f"module {index} has unknown type id {type_id}")


class InvalidOptionValue(PatchDecodeError):
    def __init__(self, module_index: int, slot: int, raw: int, available: int) -> None:
        self.module_index = module_index
        self.slot = slot
        self.raw = raw
        self.available = available
        super().__init__(
            f"module {module_index} option slot {slot}: value index {raw} "
            f"out of range (catalog lists {available} values)"
        )


class NoBlocksForType(PatchDecodeError):
    def __init__(self, type_id: int) -> None:
        self.type_id = type_id
        super().__init__(f"catalog declares no blocks for module type {type_id}")


class InvalidBlockIndex(PatchDecodeError):
    def __init__(self, type_id: int, index: int, available: int) -> None:
        self.type_id = type_id
        self.index = index
        self.available = available
        super().__init__(
            f"module type {type_id}: block {index} requested but catalog "
            f"declares {available} blocks"
        )


class InvalidConnection(PatchDecodeError):
    def __init__(self, index: int, reason: str) -> None:
        self.index = index
        self.reason = reason
        super().__init__(f"invalid connection {index}: {reason}")


class InvalidPageName(PatchDecodeError):
    def __init__(self, index: int, reason: str) -> None:
        self.index = index
        self.reason = reason
        super().__init__(f"invalid page name {index}: {reason}")


class UnsupportedFeaturePresent(PatchDecodeError):
    def __init__(self, star_count: int) -> None:
        self.star_count = star_count
        super().__init__(
            f"patch contains {star_count} starred element(s); star decoding is unsupported"
        )


class InvalidColorTable(PatchDecodeError):
    def __init__(self, length: int, module_count: int) -> None:
        self.length = length
        self.module_count = module_count
        super().__init__(
            f"trailing color table is {length} bytes; expected 0 or "
            f"{module_count * 4} ({module_count} modules)"
        )
