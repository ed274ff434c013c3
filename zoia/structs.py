from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Tuple

from .catalog import Block, OptionValue


HEADER_SIZE = 0x18  # file size word + 16-byte name + module count
NAME_SIZE = 16
MODULE_PREFIX_SIZE = 0x28  # fixed part of every module record
OPTION_SLOTS = 8
CONNECTION_SIZE = 0x14
GRID_ROWS = 5
GRID_COLUMNS = 8
GRID_CELLS = GRID_ROWS * GRID_COLUMNS
IO_PAGE = 127  # hardware-fixed I/O modules (stomp / Euro) live here
MAX_STRENGTH = 10000


class ModuleType(IntEnum):
    """Module type ids as stored in the record ``type`` field."""

    SV_FILTER = 0
    AUDIO_INPUT = 1
    AUDIO_OUTPUT = 2
    ALIASER = 3
    SEQUENCER = 4
    LFO = 5
    ADSR = 6
    VCA = 7
    AUDIO_MULTIPLY = 8
    BIT_CRUSHER = 9
    SAMPLE_AND_HOLD = 10
    OD_AND_DISTORTION = 11
    ENV_FOLLOWER = 12
    DELAY_LINE = 13
    OSCILLATOR = 14
    PUSHBUTTON = 15
    KEYBOARD = 16
    CV_INVERT = 17
    STEPS = 18
    SLEW_LIMITER = 19
    MIDI_NOTES_IN = 20
    MIDI_CC_IN = 21
    MULTIPLIER = 22
    COMPRESSOR = 23
    MULTI_FILTER = 24
    PLATE_REVERB = 25
    BUFFER_DELAY = 26
    ALL_PASS_FILTER = 27
    QUANTIZER = 28
    PHASER = 29
    LOOPER = 30
    IN_SWITCH = 31
    OUT_SWITCH = 32
    AUDIO_IN_SWITCH = 33
    AUDIO_OUT_SWITCH = 34
    MIDI_PRESSURE = 35
    ONSET_DETECTOR = 36
    RHYTHM = 37
    NOISE = 38
    RANDOM = 39
    GATE = 40
    TREMOLO = 41
    TONE_CONTROL = 42
    DELAY_W_MOD = 43
    STOMPSWITCH = 44
    VALUE = 45
    CV_DELAY = 46
    CV_LOOP = 47
    CV_FILTER = 48
    CLOCK_DIVIDER = 49
    COMPARATOR = 50
    CV_RECTIFY = 51
    TRIGGER = 52
    STEREO_SPREAD = 53
    CPORT_EXP_CV_IN = 54
    CPORT_CV_OUT = 55
    UI_BUTTON = 56
    AUDIO_PANNER = 57
    PITCH_DETECTOR = 58
    PITCH_SHIFTER = 59
    MIDI_NOTE_OUT = 60
    MIDI_CC_OUT = 61
    MIDI_PC_OUT = 62
    BIT_MODULATOR = 63
    AUDIO_BALANCE = 64
    INVERTER = 65
    FUZZ = 66
    GHOSTVERB = 67
    CABINET_SIM = 68
    FLANGER = 69
    CHORUS = 70
    VIBRATO = 71
    ENV_FILTER = 72
    RING_MODULATOR = 73
    HALL_REVERB = 74
    PING_PONG_DELAY = 75
    AUDIO_MIXER = 76
    CV_FLIP_FLOP = 77
    DIFFUSER = 78
    REVERB_LITE = 79
    ROOM_REVERB = 80
    PIXEL = 81
    MIDI_CLOCK_IN = 82
    GRANULAR = 83
    MIDI_CLOCK_OUT = 84
    TAP_TO_CV = 85
    MIDI_PITCH_BEND_IN = 86
    EURO_CV_OUT_4 = 87
    EURO_CV_IN_1 = 88
    EURO_CV_IN_2 = 89
    EURO_CV_IN_3 = 90
    EURO_CV_IN_4 = 91
    EURO_HEADPHONE_AMP = 92
    EURO_AUDIO_INPUT_1 = 93
    EURO_AUDIO_INPUT_2 = 94
    EURO_AUDIO_OUTPUT_1 = 95
    EURO_AUDIO_OUTPUT_2 = 96
    EURO_PUSHBUTTON_1 = 97
    EURO_PUSHBUTTON_2 = 98
    EURO_CV_OUT_1 = 99
    EURO_CV_OUT_2 = 100
    EURO_CV_OUT_3 = 101
    SAMPLER = 102
    DEVICE_CONTROL = 103
    CV_MIXER = 104


class Color(IntEnum):
    """Module display colors.

    Pre-1.10 firmware stores the legacy id in the record; newer firmware
    appends a per-module table using the same numbering.
    """

    UNKNOWN = 0
    BLUE = 1
    GREEN = 2
    RED = 3
    YELLOW = 4
    AQUA = 5
    MAGENTA = 6
    WHITE = 7
    ORANGE = 8
    LIME = 9
    SURF = 10
    SKY = 11
    PURPLE = 12
    PINK = 13
    PEACH = 14
    MANGO = 15

    @classmethod
    def from_id(cls, value: int) -> "Color":
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


class StarKind(Enum):
    PARAMETER = 0
    CONNECTION = 1


@dataclass(frozen=True)
class StarredElement:
    """A MIDI-mapped star on a parameter or connection.

    Never produced by the reader: any star record aborts decoding.
    """

    kind: StarKind
    module_index: int
    input_block_index: int | None
    midi_cc: int


@dataclass(frozen=True)
class Header:
    byte_count: int  # stored as a word count; already multiplied by 4
    name: str
    module_count: int


@dataclass(frozen=True)
class ModuleRecord:
    """A module record as stored, before catalog resolution."""

    index: int
    size: int  # bytes; stored as a word count
    type_id: int
    unknown: int  # usually 0, occasionally 1
    page: int
    old_color: int
    grid_position: int
    user_param_count: int
    version: int
    options: Tuple[int, ...]  # raw option bytes, one per slot
    additional_options: Tuple[int, ...] = ()
    custom_name: str = ""


@dataclass(frozen=True)
class Module:
    index: int  # position in the module list; connections refer to this
    size: int  # record length in bytes
    type_id: int
    unknown: int
    page: int
    old_color: int
    grid_position: int
    user_param_count: int
    version: int
    raw_options: Tuple[int, ...]
    additional_options: Tuple[int, ...]
    custom_name: str
    color: Color
    name: str
    description: str
    category: str
    cpu: float
    min_blocks: int
    max_blocks: int
    options: Tuple[OptionValue, ...]  # selected catalog value per declared slot
    blocks: Tuple[Block, ...]  # active blocks, in display order

    @property
    def module_type(self) -> ModuleType | None:
        try:
            return ModuleType(self.type_id)
        except ValueError:
            return None

    @property
    def display_name(self) -> str:
        return self.custom_name or self.name

    @property
    def grid_range(self) -> range:
        """Cells covered on the page: one per active block."""
        return range(self.grid_position, self.grid_position + len(self.blocks))

    @property
    def fits_grid(self) -> bool:
        return 0 <= self.grid_position and self.grid_range.stop <= GRID_CELLS

    @property
    def row(self) -> int:
        return self.grid_position // GRID_COLUMNS

    @property
    def column(self) -> int:
        return self.grid_position % GRID_COLUMNS

    def occupies(self, position: int) -> bool:
        return position in self.grid_range


@dataclass(frozen=True)
class Connection:
    source: int
    source_block: int
    destination: int
    destination_block: int
    strength: int  # 0..10000, linear

    @property
    def strength_db(self) -> float:
        return strength_to_db(self.strength)

    @property
    def strength_percent(self) -> float:
        return 100 * 10 ** (self.strength_db / 20)


def strength_to_db(strength: int) -> float:
    return -((MAX_STRENGTH - strength) / 100)
