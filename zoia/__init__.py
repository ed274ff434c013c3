"""Decode ZOIA patch files into pages, modules, blocks and connections."""

from .blocks import (  # noqa: F401
    RULES,
    active_block_indices,
    has_custom_rule,
    resolve_blocks,
    resolve_options,
)
from .catalog import (  # noqa: F401
    Block,
    ModuleCatalog,
    ModuleSchema,
    OptionGroup,
)
from .cursor import ByteCursor  # noqa: F401
from .errors import (  # noqa: F401
    CatalogError,
    InvalidBlockIndex,
    InvalidColorTable,
    InvalidConnection,
    InvalidEncoding,
    InvalidHeader,
    InvalidModule,
    InvalidModuleType,
    InvalidOptionValue,
    InvalidPageName,
    NoBlocksForType,
    OutOfBounds,
    PatchDecodeError,
    UnsupportedFeaturePresent,
)
from .patch import Page, Patch  # noqa: F401
from .reader import decode_patch, read_header, read_patch  # noqa: F401
from .structs import (  # noqa: F401
    GRID_CELLS,
    IO_PAGE,
    Color,
    Connection,
    Header,
    Module,
    ModuleRecord,
    ModuleType,
    StarKind,
    StarredElement,
    strength_to_db,
)
