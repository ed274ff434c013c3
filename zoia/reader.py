"""Decode ZOIA patch files.

A patch is a sequence of sections, each starting where the previous one
ended (all integers are little-endian u32, strings NUL-padded UTF-8):

  header        file size in words, name[16], module count
  modules       per module: size in words, type, unknown, page, old color,
                grid position, user param count, version, options[8],
                then an optional tail (additional option words and/or a
                16-byte name) filling the rest of the record
  connections   count, then 20-byte records (source module, source block,
                destination module, destination block, strength)
  page names    count, then 16-byte names
  stars         count (non-zero is unsupported)
  colors        optional: one u32 color id per module up to the declared
                file size (firmware 1.10 and later)

Module records are variable length, so every later offset is only known
after the module list has been walked.  The reader makes one forward pass
with a single cursor; bytes after the declared file size are padding.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from pathlib import Path
from typing import List, Optional, Tuple

from .blocks import resolve_blocks, resolve_options
from .catalog import ModuleCatalog
from .cursor import ByteCursor
from .errors import (
    InvalidColorTable,
    InvalidConnection,
    InvalidEncoding,
    InvalidHeader,
    InvalidModule,
    InvalidModuleType,
    InvalidPageName,
    OutOfBounds,
    UnsupportedFeaturePresent,
)
from .patch import Patch
from .structs import (
    CONNECTION_SIZE,
    HEADER_SIZE,
    MODULE_PREFIX_SIZE,
    NAME_SIZE,
    OPTION_SLOTS,
    Color,
    Connection,
    Header,
    Module,
    ModuleRecord,
)


log = logging.getLogger(__name__)

WORD = 4


def read_header(data: bytes) -> Header:
    cursor = ByteCursor(data)
    try:
        byte_count = cursor.read_u32() * WORD
        name = cursor.read_fixed_string(NAME_SIZE)
        module_count = cursor.read_u32()
    except OutOfBounds as err:
        raise InvalidHeader(f"file too short ({len(data)} bytes, need {HEADER_SIZE})") from err
    except InvalidEncoding as err:
        raise InvalidHeader("patch name is not valid UTF-8") from err

    if byte_count < HEADER_SIZE:
        raise InvalidHeader(f"declared size {byte_count} is smaller than the header")
    if byte_count > len(data):
        raise InvalidHeader(f"declared size {byte_count} exceeds data length {len(data)}")
    return Header(byte_count=byte_count, name=name, module_count=module_count)


def _read_name(cursor: ByteCursor, *, strict: bool) -> str:
    try:
        return cursor.read_fixed_string(NAME_SIZE)
    except InvalidEncoding:
        if strict:
            raise
        log.debug("undecodable name at 0x%04X treated as empty", cursor.offset - NAME_SIZE)
        return ""


def read_module_record(cursor: ByteCursor, index: int, *, strict_names: bool = False) -> ModuleRecord:
    """Read one module record, including its optional tail.

    The tail is whatever the declared record size leaves after the fixed
    40-byte prefix.  It is consumed in two steps: the additional-options
    words, then a 16-byte name if bytes are still left.  A name is taken to
    follow when at least 16 bytes remain beyond the user parameter words.
    """
    start = cursor.offset
    try:
        size = cursor.read_u32() * WORD
        if size < MODULE_PREFIX_SIZE:
            raise InvalidModule(index, f"record size {size} is below the {MODULE_PREFIX_SIZE}-byte prefix")
        if start + size > cursor.end:
            raise InvalidModule(
                index, f"record of {size} bytes at 0x{start:04X} runs past end of data"
            )
        type_id = cursor.read_u32()
        unknown = cursor.read_u32()
        page = cursor.read_u32()
        old_color = cursor.read_u32()
        grid_position = cursor.read_u32()
        user_param_count = cursor.read_u32()
        version = cursor.read_u32()
        options = cursor.read_u8_array(OPTION_SLOTS)

        additional: List[int] = []
        custom_name = ""
        remaining = size - MODULE_PREFIX_SIZE
        if remaining > 0:
            name_follows = remaining - NAME_SIZE >= WORD * user_param_count and remaining >= NAME_SIZE
            options_len = remaining - NAME_SIZE if name_follows else remaining
            additional = cursor.read_u32_array(options_len // WORD)
            remaining -= options_len
        if remaining > 0:
            custom_name = _read_name(cursor, strict=strict_names)
    except OutOfBounds as err:
        raise InvalidModule(index, str(err)) from err

    return ModuleRecord(
        index=index,
        size=size,
        type_id=type_id,
        unknown=unknown,
        page=page,
        old_color=old_color,
        grid_position=grid_position,
        user_param_count=user_param_count,
        version=version,
        options=tuple(options),
        additional_options=tuple(additional),
        custom_name=custom_name,
    )


def resolve_module(record: ModuleRecord, catalog: ModuleCatalog) -> Module:
    if record.type_id not in catalog:
        raise InvalidModuleType(record.index, record.type_id)
    schema = catalog.lookup(record.type_id)
    values = resolve_options(schema, record.options, record.index)
    blocks = resolve_blocks(schema, values, record.version)
    return Module(
        index=record.index,
        size=record.size,
        type_id=record.type_id,
        unknown=record.unknown,
        page=record.page,
        old_color=record.old_color,
        grid_position=record.grid_position,
        user_param_count=record.user_param_count,
        version=record.version,
        raw_options=record.options,
        additional_options=record.additional_options,
        custom_name=record.custom_name,
        color=Color.from_id(record.old_color),
        name=schema.name,
        description=schema.description,
        category=schema.category,
        cpu=schema.cpu,
        min_blocks=schema.min_blocks,
        max_blocks=schema.max_blocks,
        options=values,
        blocks=blocks,
    )


def read_modules(
    cursor: ByteCursor, count: int, catalog: ModuleCatalog, *, strict_names: bool = False
) -> List[Module]:
    start = cursor.offset
    modules = [
        resolve_module(read_module_record(cursor, i, strict_names=strict_names), catalog)
        for i in range(count)
    ]
    log.debug("module list: %d records, %d bytes at 0x%04X", count, cursor.offset - start, start)
    return modules


def read_connections(cursor: ByteCursor, module_count: int) -> List[Connection]:
    try:
        count = cursor.read_u32()
    except OutOfBounds as err:
        raise InvalidConnection(0, "connection count missing") from err

    connections: List[Connection] = []
    for i in range(count):
        try:
            source, source_block, destination, destination_block, strength = cursor.read_u32_array(
                CONNECTION_SIZE // WORD
            )
        except OutOfBounds as err:
            raise InvalidConnection(i, "record truncated") from err
        for role, module in (("source", source), ("destination", destination)):
            if module >= module_count:
                raise InvalidConnection(
                    i, f"{role} module {module} out of range ({module_count} modules)"
                )
        connections.append(
            Connection(
                source=source,
                source_block=source_block,
                destination=destination,
                destination_block=destination_block,
                strength=strength,
            )
        )
    log.debug("connections: %d", count)
    return connections


def read_page_names(cursor: ByteCursor, *, strict_names: bool = False) -> List[str]:
    try:
        count = cursor.read_u32()
    except OutOfBounds as err:
        raise InvalidPageName(0, "page count missing") from err

    names: List[str] = []
    for i in range(count):
        try:
            names.append(_read_name(cursor, strict=strict_names))
        except OutOfBounds as err:
            raise InvalidPageName(i, "name truncated") from err
    return names


def read_star_count(cursor: ByteCursor) -> int:
    count = cursor.read_u32()
    if count:
        raise UnsupportedFeaturePresent(count)
    return count


def read_color_table(cursor: ByteCursor, module_count: int) -> Optional[Tuple[Color, ...]]:
    """Read the trailing per-module color table, or None when absent.

    The table has no count: it runs to the declared end of the patch.  Any
    length other than zero or one word per module is rejected.
    """
    length = cursor.remaining
    if length == 0:
        log.debug("no trailing color table")
        return None
    if length != module_count * WORD:
        raise InvalidColorTable(length, module_count)
    return tuple(Color.from_id(value) for value in cursor.read_u32_array(module_count))


def decode_patch(data: bytes, catalog: ModuleCatalog, *, strict_names: bool = False) -> Patch:
    """Decode a complete patch held in memory.

    ``strict_names`` makes undecodable module and page names an error
    (``InvalidEncoding``) instead of decoding them as empty strings.
    """
    header = read_header(data)
    cursor = ByteCursor(data, HEADER_SIZE, end=header.byte_count)

    modules = read_modules(cursor, header.module_count, catalog, strict_names=strict_names)
    connections = read_connections(cursor, len(modules))
    page_names = read_page_names(cursor, strict_names=strict_names)
    star_count = read_star_count(cursor)
    colors = read_color_table(cursor, len(modules))
    if colors is not None:
        modules = [replace(module, color=color) for module, color in zip(modules, colors)]

    return Patch.assemble(
        header,
        modules,
        connections,
        page_names,
        star_count=star_count,
        has_color_table=colors is not None,
    )


def read_patch(path: Path | str, catalog: ModuleCatalog, *, strict_names: bool = False) -> Patch:
    return decode_patch(Path(path).read_bytes(), catalog, strict_names=strict_names)
