from dataclasses import FrozenInstanceError
from pathlib import Path
import sys

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from zoia.catalog import ModuleCatalog  # noqa: E402
from zoia.cursor import ByteCursor  # noqa: E402
from zoia.errors import (  # noqa: E402
    InvalidColorTable,
    InvalidConnection,
    InvalidEncoding,
    InvalidHeader,
    InvalidModule,
    InvalidModuleType,
    InvalidOptionValue,
    InvalidPageName,
    OutOfBounds,
    PatchDecodeError,
    UnsupportedFeaturePresent,
)
from zoia.reader import decode_patch, read_header, read_module_record, read_patch  # noqa: E402
from zoia.structs import Color, ModuleType, StarKind, StarredElement  # noqa: E402

from builders import name16, pack_module, pack_patch, u32  # noqa: E402


# A type with no block rule: every catalog block is shown.
PLAIN = ModuleType.SAMPLE_AND_HOLD


def single_input_patch(**kwargs) -> bytes:
    return pack_patch(modules=[pack_module(ModuleType.AUDIO_INPUT, **kwargs)])


# ── header ────────────────────────────────────────────────────────────


def test_header_fields() -> None:
    data = single_input_patch()
    header = read_header(data)
    assert header.byte_count == 76
    assert header.name == "Test"
    assert header.module_count == 1


@pytest.mark.parametrize(
    "data, message",
    [
        (b"\x06\x00\x00\x00" + b"\x00" * 10, "too short"),
        (u32(5) + name16("x") + u32(0), "smaller than the header"),
        (u32(40) + name16("x") + u32(0), "exceeds data length"),
        (u32(6) + name16(b"\xc3\x28") + u32(0), "UTF-8"),
    ],
    ids=["short", "undersized", "oversized", "bad-name"],
)
def test_bad_header(data: bytes, message: str, catalog: ModuleCatalog) -> None:
    with pytest.raises(InvalidHeader, match=message):
        decode_patch(data, catalog)


def test_empty_patch(catalog: ModuleCatalog) -> None:
    patch = decode_patch(pack_patch(name="Empty"), catalog)
    assert patch.name == "Empty"
    assert patch.byte_count == 36
    assert patch.modules == ()
    assert patch.pages == ()
    assert patch.connections == ()
    assert patch.has_color_table is False


# ── end to end ────────────────────────────────────────────────────────


def test_single_audio_input(catalog: ModuleCatalog) -> None:
    data = single_input_patch()
    assert len(data) == 76
    patch = decode_patch(data, catalog)

    assert patch.name == "Test"
    assert patch.byte_count == len(data)
    assert len(patch.pages) == 1
    page = patch.pages[0]
    assert page.number == 0
    assert page.name is None
    (module,) = page.modules
    assert module is patch.modules[0]
    assert module.name == "Audio Input"
    assert module.category == "Interface"
    assert module.options == ("stereo",)
    assert [b.name for b in module.blocks] == ["input_L", "input_R"]
    assert module.custom_name == ""
    assert module.additional_options == ()


def test_module_fields_are_carried_through(catalog: ModuleCatalog) -> None:
    module_bytes = pack_module(
        ModuleType.AUDIO_INPUT,
        page=2,
        grid=13,
        options=[2],
        old_color=4,
        version=3,
        unknown=1,
    )
    (module,) = decode_patch(pack_patch(modules=[module_bytes]), catalog).modules
    assert module.page == 2
    assert module.grid_position == 13
    assert (module.row, module.column) == (1, 5)
    assert module.version == 3
    assert module.unknown == 1
    assert module.raw_options == (2, 0, 0, 0, 0, 0, 0, 0)
    assert module.options == ("right",)
    assert [b.name for b in module.blocks] == ["input_R"]
    assert module.color is Color.YELLOW
    assert module.module_type is ModuleType.AUDIO_INPUT


def test_read_patch_from_file(tmp_path: Path, catalog: ModuleCatalog) -> None:
    path = tmp_path / "000_zoia_Test.bin"
    path.write_bytes(single_input_patch())
    assert read_patch(path, catalog) == decode_patch(path.read_bytes(), catalog)
    assert read_patch(str(path), catalog).name == "Test"


def test_decoding_is_deterministic(catalog: ModuleCatalog) -> None:
    data = pack_patch(
        modules=[
            pack_module(ModuleType.SEQUENCER, options=[3, 1, 1], name="Steps"),
            pack_module(ModuleType.AUDIO_OUTPUT, page=1),
        ],
        connections=[(0, 34, 1, 0, 7500)],
        page_names=["Seq", "Out"],
        colors=[3, 9],
    )
    assert decode_patch(data, catalog) == decode_patch(data, catalog)


def test_zero_padding_past_declared_size_is_ignored(catalog: ModuleCatalog) -> None:
    plain = single_input_patch()
    padded = plain + b"\x00" * 1000
    assert decode_patch(padded, catalog) == decode_patch(plain, catalog)


# ── module record tails ──────────────────────────────────────────────


def read_record(raw: bytes, strict_names: bool = False):
    return read_module_record(ByteCursor(raw), 0, strict_names=strict_names)


def test_prefix_only_record_has_no_tail() -> None:
    raw = pack_module(PLAIN)
    assert len(raw) == 40
    record = read_record(raw)
    assert record.size == 40
    assert record.additional_options == ()
    assert record.custom_name == ""


def test_record_with_name_only() -> None:
    raw = pack_module(PLAIN, name="Drone")
    assert len(raw) == 56
    record = read_record(raw)
    assert record.additional_options == ()
    assert record.custom_name == "Drone"


def test_record_with_additional_options_and_name() -> None:
    raw = pack_module(PLAIN, additional=[7, 9], name="Lead")
    record = read_record(raw)
    assert record.user_param_count == 2
    assert record.additional_options == (7, 9)
    assert record.custom_name == "Lead"


def test_record_with_additional_options_only() -> None:
    raw = pack_module(PLAIN, additional=[1, 2, 3, 4, 5])
    record = read_record(raw)
    assert record.additional_options == (1, 2, 3, 4, 5)
    assert record.custom_name == ""


def test_short_tail_with_many_user_params_is_all_options() -> None:
    raw = pack_module(PLAIN, additional=[1, 2, 3, 4], user_params=4)
    record = read_record(raw)
    assert record.additional_options == (1, 2, 3, 4)
    assert record.custom_name == ""


def test_record_consumes_exactly_its_declared_size() -> None:
    raw = pack_module(PLAIN, additional=[1], name="A") + u32(0xDEADBEEF)
    cursor = ByteCursor(raw)
    read_module_record(cursor, 0)
    assert cursor.offset == 60
    assert cursor.read_u32() == 0xDEADBEEF


def test_undecodable_module_name_is_empty_by_default(catalog: ModuleCatalog) -> None:
    data = single_input_patch(name=b"\xff\xfeoops")
    (module,) = decode_patch(data, catalog).modules
    assert module.custom_name == ""
    assert module.display_name == "Audio Input"


def test_undecodable_module_name_fails_in_strict_mode(catalog: ModuleCatalog) -> None:
    data = single_input_patch(name=b"\xff\xfeoops")
    with pytest.raises(InvalidEncoding) as excinfo:
        decode_patch(data, catalog, strict_names=True)
    assert excinfo.value.offset == 24 + 40


def test_custom_name_is_display_name(catalog: ModuleCatalog) -> None:
    (module,) = decode_patch(single_input_patch(name="Guitar"), catalog).modules
    assert module.display_name == "Guitar"
    assert module.name == "Audio Input"


# ── module failures ───────────────────────────────────────────────────


def test_record_smaller_than_prefix(catalog: ModuleCatalog) -> None:
    data = single_input_patch(size_words=5)
    with pytest.raises(InvalidModule, match="below the 40-byte prefix") as excinfo:
        decode_patch(data, catalog)
    assert excinfo.value.index == 0


def test_record_running_past_end(catalog: ModuleCatalog) -> None:
    data = pack_patch(modules=[pack_module(PLAIN), pack_module(PLAIN, size_words=100)])
    with pytest.raises(InvalidModule, match="runs past end") as excinfo:
        decode_patch(data, catalog)
    assert excinfo.value.index == 1


def test_module_count_larger_than_data(catalog: ModuleCatalog) -> None:
    data = pack_patch(modules=[pack_module(PLAIN)], module_count=3)
    with pytest.raises(PatchDecodeError):
        decode_patch(data, catalog)


def test_unknown_type_id(catalog: ModuleCatalog) -> None:
    data = pack_patch(modules=[pack_module(PLAIN), pack_module(200)])
    with pytest.raises(InvalidModuleType) as excinfo:
        decode_patch(data, catalog)
    assert excinfo.value.index == 1
    assert excinfo.value.type_id == 200


def test_option_index_outside_catalog_values(catalog: ModuleCatalog) -> None:
    data = single_input_patch(options=[5])
    with pytest.raises(InvalidOptionValue) as excinfo:
        decode_patch(data, catalog)
    assert excinfo.value.raw == 5
    assert excinfo.value.available == 3


def test_clock_divider_version_changes_blocks(catalog: ModuleCatalog) -> None:
    def block_names(version: int):
        module = pack_module(ModuleType.CLOCK_DIVIDER, version=version)
        return [b.name for b in decode_patch(pack_patch(modules=[module]), catalog).modules[0].blocks]

    assert block_names(0) == ["clock_in", "reset_in", "p_modifier", "output"]
    assert block_names(1) == [
        "clock_in",
        "reset_in",
        "p_dividend",
        "p_divisor",
        "output",
    ]


def test_module_overflowing_grid_still_decodes(catalog: ModuleCatalog) -> None:
    (module,) = decode_patch(single_input_patch(grid=39), catalog).modules
    assert module.grid_range == range(39, 41)
    assert module.fits_grid is False


# ── connections ──────────────────────────────────────────────────────


def test_connections(catalog: ModuleCatalog) -> None:
    data = pack_patch(
        modules=[pack_module(ModuleType.AUDIO_INPUT), pack_module(ModuleType.AUDIO_OUTPUT, page=1)],
        connections=[(0, 0, 1, 0, 10000), (0, 1, 1, 1, 5000)],
    )
    patch = decode_patch(data, catalog)
    first, second = patch.connections
    assert (first.source, first.source_block) == (0, 0)
    assert (first.destination, first.destination_block) == (1, 0)
    assert first.strength == 10000
    assert first.strength_db == 0.0
    assert second.strength_db == pytest.approx(-50.0)


def test_connection_to_missing_module(catalog: ModuleCatalog) -> None:
    data = pack_patch(modules=[pack_module(PLAIN)], connections=[(0, 0, 3, 0, 10000)])
    with pytest.raises(InvalidConnection, match="destination module 3 out of range") as excinfo:
        decode_patch(data, catalog)
    assert excinfo.value.index == 0


def test_truncated_connection_record(catalog: ModuleCatalog) -> None:
    body = pack_module(PLAIN) + u32(2) + u32(0, 1, 0, 0, 100)
    data = u32((24 + len(body)) // 4) + name16("T") + u32(1) + body
    with pytest.raises(InvalidConnection, match="truncated") as excinfo:
        decode_patch(data, catalog)
    assert excinfo.value.index == 1


def test_missing_connection_count(catalog: ModuleCatalog) -> None:
    body = pack_module(PLAIN)
    data = u32((24 + len(body)) // 4) + name16("T") + u32(1) + body
    with pytest.raises(InvalidConnection, match="count missing"):
        decode_patch(data, catalog)


# ── page names ───────────────────────────────────────────────────────


def test_page_names_attach_by_page_number(catalog: ModuleCatalog) -> None:
    data = pack_patch(
        modules=[
            pack_module(PLAIN, page=3),
            pack_module(PLAIN, page=0),
            pack_module(PLAIN, page=1),
        ],
        page_names=["Main", "Mod"],
    )
    patch = decode_patch(data, catalog)
    assert patch.page_names == ("Main", "Mod")
    assert [(p.number, p.name) for p in patch.pages] == [(0, "Main"), (1, "Mod"), (3, None)]


def test_undecodable_page_name(catalog: ModuleCatalog) -> None:
    data = pack_patch(page_names=["ok", b"\xff"])
    assert decode_patch(data, catalog).page_names == ("ok", "")
    with pytest.raises(InvalidEncoding):
        decode_patch(data, catalog, strict_names=True)


def test_truncated_page_names(catalog: ModuleCatalog) -> None:
    body = u32(0) + u32(2) + name16("one")
    data = u32((24 + len(body)) // 4) + name16("T") + u32(0) + body
    with pytest.raises(InvalidPageName) as excinfo:
        decode_patch(data, catalog)
    assert excinfo.value.index == 1


# ── stars ────────────────────────────────────────────────────────────


def test_starred_elements_are_unsupported(catalog: ModuleCatalog) -> None:
    data = pack_patch(modules=[pack_module(PLAIN)], stars=2)
    with pytest.raises(UnsupportedFeaturePresent) as excinfo:
        decode_patch(data, catalog)
    assert excinfo.value.star_count == 2


def test_starred_element_model() -> None:
    star = StarredElement(
        kind=StarKind.CONNECTION, module_index=2, input_block_index=None, midi_cc=74
    )
    assert star.kind is StarKind.CONNECTION
    assert star.input_block_index is None
    with pytest.raises(FrozenInstanceError):
        star.midi_cc = 1  # type: ignore[misc]


def test_missing_star_count(catalog: ModuleCatalog) -> None:
    body = u32(0) + u32(0)
    data = u32((24 + len(body)) // 4) + name16("T") + u32(0) + body
    with pytest.raises(OutOfBounds):
        decode_patch(data, catalog)


# ── color table ──────────────────────────────────────────────────────


def test_without_color_table_legacy_color_is_used(catalog: ModuleCatalog) -> None:
    patch = decode_patch(single_input_patch(old_color=2), catalog)
    assert patch.has_color_table is False
    assert patch.modules[0].color is Color.GREEN


def test_color_table_overrides_legacy_color(catalog: ModuleCatalog) -> None:
    data = pack_patch(
        modules=[pack_module(PLAIN, old_color=2), pack_module(PLAIN, page=1)],
        colors=[5, 15],
    )
    patch = decode_patch(data, catalog)
    assert patch.has_color_table is True
    assert [m.color for m in patch.modules] == [Color.AQUA, Color.MANGO]
    assert patch.modules[0].old_color == 2
    assert patch.pages[1].modules[0].color is Color.MANGO


def test_unknown_color_id_maps_to_unknown(catalog: ModuleCatalog) -> None:
    data = pack_patch(modules=[pack_module(PLAIN)], colors=[99])
    assert decode_patch(data, catalog).modules[0].color is Color.UNKNOWN


def test_color_table_of_wrong_length(catalog: ModuleCatalog) -> None:
    data = pack_patch(modules=[pack_module(PLAIN)], colors=[1, 2])
    with pytest.raises(InvalidColorTable) as excinfo:
        decode_patch(data, catalog)
    assert excinfo.value.length == 8
    assert excinfo.value.module_count == 1


def test_errors_share_a_base_class() -> None:
    for error in (InvalidHeader, InvalidModule, InvalidConnection, InvalidColorTable, OutOfBounds):
        assert issubclass(error, PatchDecodeError)
        assert issubclass(error, ValueError)
