"""Active-block resolution.

Every module type declares a maximum block list in the catalog.  Most types
show all of it; the types listed in ``RULES`` show a subset that depends on
the module's selected options (and, for the clock divider, on the record
version).  A rule is a tuple of primitives applied in order, each yielding
catalog block indices:

  Fixed       always-present blocks
  Toggle      blocks present when an option slot holds one of ``values``
              (``"on"`` by default), or with ``negate`` when it holds
              anything else
  Choice      one branch picked by an option's selected value
  Repeat      ``parts`` repeated once per unit of an integer option, each
              repetition shifted by ``stride`` blocks
  ByVersion   one of two branches picked by the record version
  IfCount     ``then`` only when an option slot holds an integer
  All         the whole catalog list

Option slots are indexes into the resolved option values; ``-1`` is the
last resolved option.  A slot with no resolved value never satisfies a
Toggle, falls to a Choice's ``missing`` branch and gives a Repeat its
``default`` count.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Iterator, List, Mapping, Sequence, Tuple

from .catalog import Block, ModuleSchema, OptionValue
from .errors import InvalidBlockIndex, InvalidOptionValue, NoBlocksForType
from .structs import OPTION_SLOTS, ModuleType


ON = "on"


def selected(values: Sequence[OptionValue], slot: int) -> OptionValue | None:
    try:
        return values[slot]
    except IndexError:
        return None


class Rule(ABC):
    @abstractmethod
    def expand(
        self, values: Sequence[OptionValue], version: int, total: int, offset: int = 0
    ) -> Iterator[int]:
        """Yield the catalog block indices this rule contributes."""


Branch = Tuple[Rule, ...]


def _expand_all(
    rules: Branch, values: Sequence[OptionValue], version: int, total: int, offset: int
) -> Iterator[int]:
    for rule in rules:
        yield from rule.expand(values, version, total, offset)


@dataclass(frozen=True)
class Fixed(Rule):
    blocks: Tuple[int, ...]

    def expand(self, values, version, total, offset=0):
        for index in self.blocks:
            yield index + offset


@dataclass(frozen=True)
class All(Rule):
    def expand(self, values, version, total, offset=0):
        yield from range(total)


@dataclass(frozen=True)
class Toggle(Rule):
    slot: int
    then: Branch
    values: Tuple[OptionValue, ...] = (ON,)
    negate: bool = False

    def expand(self, values, version, total, offset=0):
        value = selected(values, self.slot)
        if value is None:
            return
        if (value in self.values) != self.negate:
            yield from _expand_all(self.then, values, version, total, offset)


@dataclass(frozen=True)
class Choice(Rule):
    slot: int
    cases: Tuple[Tuple[OptionValue, Branch], ...]
    default: Branch
    missing: Branch | None = None

    def expand(self, values, version, total, offset=0):
        value = selected(values, self.slot)
        if value is None and self.missing is not None:
            branch = self.missing
        else:
            branch = dict(self.cases).get(value, self.default)
        yield from _expand_all(branch, values, version, total, offset)


@dataclass(frozen=True)
class Repeat(Rule):
    slot: int
    stride: int
    parts: Branch
    extra: int = 0
    default: int = 1

    def count(self, values: Sequence[OptionValue]) -> int:
        value = selected(values, self.slot)
        if isinstance(value, int) and not isinstance(value, bool):
            n = value
        else:
            n = self.default
        return max(n + self.extra, 0)

    def expand(self, values, version, total, offset=0):
        for i in range(self.count(values)):
            yield from _expand_all(self.parts, values, version, total, offset + i * self.stride)


@dataclass(frozen=True)
class IfCount(Rule):
    slot: int
    then: Branch

    def expand(self, values, version, total, offset=0):
        value = selected(values, self.slot)
        if isinstance(value, int) and not isinstance(value, bool):
            yield from _expand_all(self.then, values, version, total, offset)


@dataclass(frozen=True)
class ByVersion(Rule):
    minimum: int
    newer: Branch
    older: Branch

    def expand(self, values, version, total, offset=0):
        branch = self.newer if version >= self.minimum else self.older
        yield from _expand_all(branch, values, version, total, offset)


# -- table helpers ----------------------------------------------------------


def fixed(*blocks: int) -> Fixed:
    return Fixed(tuple(blocks))


def span(first: int, last: int) -> Tuple[int, ...]:
    """Inclusive block range."""
    return tuple(range(first, last + 1))


def on(slot: int, *blocks: int) -> Toggle:
    return Toggle(slot, (fixed(*blocks),))


def when(slot: int, value: OptionValue | Tuple[OptionValue, ...], *blocks: int) -> Toggle:
    accepted = value if isinstance(value, tuple) else (value,)
    return Toggle(slot, (fixed(*blocks),), values=accepted)


def unless(slot: int, value: OptionValue, *blocks: int) -> Toggle:
    return Toggle(slot, (fixed(*blocks),), values=(value,), negate=True)


def choice(
    slot: int,
    cases: Mapping[OptionValue, Sequence[int]],
    default: Sequence[int] | None,
    missing: Sequence[int] | None = None,
) -> Choice:
    return Choice(
        slot,
        tuple((value, (fixed(*blocks),)) for value, blocks in cases.items()),
        (All(),) if default is None else (fixed(*default),),
        None if missing is None else (fixed(*missing),),
    )


def count(slot: int, start: int, *, extra: int = 0, default: int = 1) -> Repeat:
    return Repeat(slot, 1, (fixed(start),), extra=extra, default=default)


def _rate_tap(slot: int) -> Choice:
    return choice(slot, {"rate": [2], "tap_tempo": [3]}, [4])


T = ModuleType

RULES: Dict[int, Branch] = {
    T.SV_FILTER: (fixed(0, 1, 2), on(0, 3), on(1, 4), on(2, 5)),
    T.AUDIO_INPUT: (choice(0, {"left": [0], "right": [1]}, [0, 1]),),
    T.AUDIO_OUTPUT: (
        choice(-1, {"left": [0], "right": [1]}, [0, 1]),
        on(0, 2),
    ),
    T.SEQUENCER: (count(0, 0), on(2, 33), count(1, 34)),
    T.LFO: (choice(0, {"tap": [0]}, [1]), on(1, 2), on(2, 3), on(3, 4), fixed(5)),
    T.ADSR: (fixed(0), on(0, 1), on(1, 2), on(3, 6), on(5, 7), on(3, 8), fixed(9)),
    T.VCA: (fixed(0), when(0, "stereo", 1), fixed(2, 3), when(0, "stereo", 4)),
    T.ENV_FOLLOWER: (fixed(0), on(0, 1, 2), fixed(3)),
    T.DELAY_LINE: (fixed(0), choice(0, {"yes": [2, 3]}, [1]), fixed(4)),
    T.OSCILLATOR: (fixed(0), on(0, 1), on(1, 2), fixed(3)),
    T.KEYBOARD: (IfCount(0, (count(0, 0), fixed(32))), fixed(*span(40, 42))),
    T.SLEW_LIMITER: (fixed(0), choice(0, {"linked": [1]}, [2, 3]), fixed(4)),
    T.MIDI_NOTES_IN: (Repeat(1, 4, (fixed(0, 1), on(0, 2), on(0, 3))),),
    T.MULTIPLIER: (fixed(0), count(0, 1, extra=-1), fixed(8)),
    T.COMPRESSOR: (
        fixed(0),
        when(3, "stereo", 1),
        fixed(2),
        on(0, 3),
        on(1, 4),
        on(2, 5),
        when(4, "external", 6),
        fixed(7),
        when(3, "stereo", 8),
    ),
    T.MULTI_FILTER: (
        fixed(0),
        when(0, ("bell", "hi_shelf", "low_shelf"), 1),
        fixed(*span(2, 4)),
    ),
    T.QUANTIZER: (fixed(0), when(0, "yes", 1, 2), fixed(3)),
    T.PHASER: (
        fixed(0),
        when(0, "2in->2out", 1),
        _rate_tap(0),
        fixed(*span(5, 8)),
        when(0, "1in->1out", 9),
    ),
    T.LOOPER: (
        fixed(0, 1, 2),
        when(7, "yes", 3),
        fixed(4),
        on(1, 5, 6),
        when(5, "yes", 7),
        when(6, "overdub", 8),
        fixed(9),
    ),
    T.IN_SWITCH: (count(0, 0), fixed(16, 17)),
    T.OUT_SWITCH: (fixed(0, 1), count(0, 2)),
    T.AUDIO_IN_SWITCH: (count(0, 0, extra=1, default=0), fixed(16, 17)),
    T.AUDIO_OUT_SWITCH: (fixed(0, 1), count(0, 2, default=0)),
    T.ONSET_DETECTOR: (fixed(0), on(0, 1), fixed(2)),
    T.RHYTHM: (fixed(0, 1, 2), on(0, 3), fixed(4)),
    T.RANDOM: (on(1, 0), fixed(1)),
    T.GATE: (
        fixed(0),
        when(2, "stereo", 1),
        fixed(2),
        on(0, 3),
        on(1, 4),
        when(3, "external", 5),
        fixed(6),
        when(2, "stereo", 7),
    ),
    T.TREMOLO: (
        fixed(0),
        when(0, "2in->2out", 1),
        _rate_tap(1),
        fixed(5, 6),
        unless(0, "1in-1out", 7),
    ),
    T.TONE_CONTROL: (
        fixed(0),
        when(0, "stereo", 1),
        fixed(*span(2, 4)),
        when(1, 2, 5, 6),
        fixed(7, 8),
        when(0, "stereo", 9),
    ),
    T.DELAY_W_MOD: (
        fixed(0),
        when(0, "2in->2out", 1),
        choice(1, {"rate": [2]}, [3]),
        fixed(*span(4, 8)),
        unless(0, "1in->1out", 9),
    ),
    T.CV_LOOP: (fixed(*span(0, 3)), on(1, 4, 5), fixed(6, 7)),
    T.CV_FILTER: (fixed(0), choice(0, {"linked": [1]}, [2, 3]), fixed(4)),
    T.CLOCK_DIVIDER: (ByVersion(1, (fixed(0, 1, 3, 4, 5),), (fixed(0, 1, 2, 5),)),),
    T.STEREO_SPREAD: (choice(0, {"haas": [0, 3, 4, 5]}, [0, 1, 2, 4, 5]),),
    T.UI_BUTTON: (fixed(0), when(0, "enabled", 1)),
    T.AUDIO_PANNER: (fixed(0), when(0, "2in->2out", 1), fixed(*span(2, 4))),
    T.MIDI_NOTE_OUT: (fixed(0, 1), on(1, 2)),
    T.AUDIO_BALANCE: (choice(0, {"mono": [0, 2, 4, 5]}, None),),
    T.GHOSTVERB: (
        fixed(0),
        when(0, "stereo", 1),
        fixed(*span(2, 6)),
        unless(0, "1in>1out", 7),
    ),
    T.CABINET_SIM: (choice(0, {"mono": [0, 2]}, None),),
    T.FLANGER: (
        fixed(0),
        when(0, "stereo", 1),
        _rate_tap(1),
        fixed(*span(5, 9)),
        unless(0, "1in>1out", 10),
    ),
    T.CHORUS: (
        fixed(0),
        when(0, "stereo", 1),
        _rate_tap(1),
        fixed(*span(5, 8)),
        unless(0, "1in>1out", 9),
    ),
    T.VIBRATO: (
        fixed(0),
        when(0, "stereo", 1),
        _rate_tap(1),
        fixed(5, 6),
        unless(0, "1in>1out", 7),
    ),
    T.ENV_FILTER: (
        fixed(0),
        when(0, "stereo", 1),
        fixed(*span(2, 6)),
        unless(0, "1in>1out", 7),
    ),
    T.RING_MODULATOR: (
        fixed(0),
        choice(1, {ON: [2]}, [1], missing=[2]),
        on(2, 3),
        fixed(4, 5),
    ),
    T.PING_PONG_DELAY: (
        fixed(0),
        when(0, "stereo", 1),
        choice(1, {"rate": [2]}, [3]),
        fixed(*span(4, 9)),
    ),
    T.AUDIO_MIXER: (
        Repeat(0, 2, (fixed(0), when(1, "stereo", 1)), default=0),
        count(0, 15, default=0),
        Toggle(2, (count(0, 23, extra=1, default=0),)),
        fixed(32),
        when(1, "stereo", 33),
    ),
    T.REVERB_LITE: (
        fixed(0),
        when(0, "stereo", 1),
        fixed(*span(2, 4)),
        unless(0, "1in->1out", 5),
    ),
    T.PIXEL: (choice(0, {"cv": [0]}, [1]),),
    T.MIDI_CLOCK_IN: (
        fixed(0),
        when(0, "enabled", 1),
        when(1, "enabled", 2),
        when(2, "enabled", 3),
    ),
    T.GRANULAR: (choice(1, {"mono": [0, *span(2, 8)]}, None),),
    T.MIDI_CLOCK_OUT: (
        fixed(0),
        when(1, "enabled", 1),
        when(2, "enabled", 2),
        when(3, "enabled", 3, 4),
    ),
    T.TAP_TO_CV: (fixed(0), on(0, 1, 2), fixed(3)),
    T.SAMPLER: (
        fixed(0),
        when(0, "enabled", 1),
        fixed(*span(2, 5)),
        on(2, 6),
        fixed(7),
    ),
    T.DEVICE_CONTROL: (choice(0, {"bypass": [0], "stomp aux": [1]}, [2]),),
    T.CV_MIXER: (count(0, 0, default=0), count(0, 8, default=0), fixed(16)),
}


def has_custom_rule(type_id: int) -> bool:
    return type_id in RULES


def active_block_indices(
    type_id: int, values: Sequence[OptionValue], version: int, total: int
) -> List[int]:
    """Return the catalog indices of the blocks shown for one module instance.

    ``total`` is the length of the type's catalog block list.
    """
    if total <= 0:
        raise NoBlocksForType(type_id)
    rules = RULES.get(type_id)
    if rules is None:
        return list(range(total))
    indices = list(_expand_all(rules, values, version, total, 0))
    for index in indices:
        if not 0 <= index < total:
            raise InvalidBlockIndex(type_id, index, total)
    return indices


def resolve_blocks(
    schema: ModuleSchema, values: Sequence[OptionValue], version: int
) -> Tuple[Block, ...]:
    indices = active_block_indices(schema.type_id, values, version, len(schema.blocks))
    return tuple(schema.blocks[i] for i in indices)


def resolve_options(
    schema: ModuleSchema, raw: Sequence[int], module_index: int
) -> Tuple[OptionValue, ...]:
    """Map raw option bytes to the catalog values they select.

    Only slots the catalog declares are resolved; the remaining raw bytes
    carry no meaning for the type.
    """
    values: List[OptionValue] = []
    for slot, group in enumerate(schema.options[:OPTION_SLOTS]):
        if slot >= len(raw):
            break
        index = raw[slot]
        if index >= len(group):
            raise InvalidOptionValue(module_index, slot, index, len(group))
        values.append(group.value_at(index))
    return tuple(values)
