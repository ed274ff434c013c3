from pathlib import Path
import sys

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from zoia.catalog import ModuleCatalog  # noqa: E402
from zoia.patch import Patch  # noqa: E402
from zoia.reader import decode_patch  # noqa: E402
from zoia.structs import IO_PAGE, Connection, Header, ModuleType, strength_to_db  # noqa: E402

from builders import pack_module, pack_patch  # noqa: E402


@pytest.fixture
def patch(catalog: ModuleCatalog) -> Patch:
    data = pack_patch(
        name="Layout",
        modules=[
            pack_module(ModuleType.SAMPLE_AND_HOLD, page=1, grid=10),
            pack_module(ModuleType.AUDIO_INPUT, page=0, grid=8),
            pack_module(ModuleType.SAMPLE_AND_HOLD, page=1, grid=2),
            pack_module(ModuleType.AUDIO_OUTPUT, page=IO_PAGE, grid=0),
            pack_module(ModuleType.SAMPLE_AND_HOLD, page=1, grid=11, name="Overlap"),
        ],
        connections=[(1, 0, 0, 0, 10000), (0, 1, 3, 0, 8000), (1, 1, 3, 1, 0)],
        page_names=["Inputs", "Mod"],
    )
    return decode_patch(data, catalog)


def test_pages_are_sorted_by_number(patch: Patch) -> None:
    assert [p.number for p in patch.pages] == [0, 1, IO_PAGE]
    assert [p.name for p in patch.pages] == ["Inputs", "Mod", None]


def test_modules_keep_declaration_order(patch: Patch) -> None:
    assert [m.index for m in patch.modules] == [0, 1, 2, 3, 4]
    assert patch.module_count == 5


def test_page_modules_are_sorted_by_grid_position(patch: Patch) -> None:
    page = patch.page(1)
    assert [m.grid_position for m in page.modules] == [2, 10, 11]
    assert [m.index for m in page.modules] == [2, 0, 4]


def test_every_module_appears_on_exactly_one_page(patch: Patch) -> None:
    placed = [m.index for page in patch.pages for m in page.modules]
    assert sorted(placed) == [m.index for m in patch.modules]


def test_io_page(patch: Patch) -> None:
    assert patch.io_page is not None
    assert patch.io_page.is_io_page
    assert [m.name for m in patch.io_page.modules] == ["Audio Output"]
    assert not patch.page(0).is_io_page


def test_missing_page(patch: Patch) -> None:
    assert patch.page(5) is None
    assert patch.modules_at(5, 0) == []


def test_modules_at_reports_overlap(patch: Patch) -> None:
    # Module 0 covers cells 10-12 and module 4 covers 11-13.
    assert [m.index for m in patch.modules_at(1, 10)] == [0]
    assert [m.index for m in patch.modules_at(1, 12)] == [0, 4]
    assert [m.display_name for m in patch.modules_at(1, 13)] == ["Overlap"]
    assert patch.modules_at(1, 20) == []


def test_connection_queries(patch: Patch) -> None:
    assert [c.destination for c in patch.connections_from(1)] == [0, 3]
    assert [c.source for c in patch.connections_to(3)] == [0, 1]
    assert patch.connections_to(1) == []


def test_assemble_without_page_names() -> None:
    header = Header(byte_count=36, name="Bare", module_count=0)
    patch = Patch.assemble(header, [], [], [])
    assert patch.pages == ()
    assert patch.page_names == ()
    assert patch.star_count == 0
    assert patch.io_page is None


def test_assemble_keeps_header_values(patch: Patch) -> None:
    header = Header(byte_count=patch.byte_count, name=patch.name, module_count=patch.module_count)
    rebuilt = Patch.assemble(
        header,
        patch.modules,
        patch.connections,
        patch.page_names,
        star_count=patch.star_count,
        has_color_table=patch.has_color_table,
    )
    assert rebuilt == patch


@pytest.mark.parametrize(
    "strength, db",
    [(10000, 0.0), (0, -100.0), (7500, -25.0), (9950, -0.5)],
)
def test_strength_to_db(strength: int, db: float) -> None:
    assert strength_to_db(strength) == pytest.approx(db)
    assert Connection(0, 0, 0, 0, strength).strength_db == pytest.approx(db)


def test_strength_percent() -> None:
    assert Connection(0, 0, 1, 0, 10000).strength_percent == pytest.approx(100.0)
    assert Connection(0, 0, 1, 0, 8000).strength_percent == pytest.approx(10.0)
