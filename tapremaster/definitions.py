"""Core data types shared by the tape tools: loader types, formats, blocks and TAP images."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum, auto
from typing import Optional

FTVERSION = 2.77
FTYEAR = 2006

DEFTOL = 11
"""Default bit reading tolerance (1 means zero tolerance)."""

LAME = 0x0F
"""Cutoff value for 'noise' pulses when rebuilding pauses."""

BLKMAX = 2000
"""Maximum number of blocks held in the block database."""

CPS = 985248
"""6510 cycles per second (PAL)."""

NA = -1
"""Indicator: not applicable."""
VV = -1
"""Indicator: a variable value is used."""
XX = 0xFF
"""Indicator: don't care."""

LSBF = 0
"""Least significant bit first."""
MSBF = 1
"""Most significant bit first."""

HEADER_LEN = 20
TAP_SIGNATURE = b"C64-TAPE-RAW"
VERSION_OFFSET = 12
SIZE_OFFSET = 16


class LoaderType(IntEnum):
    """Kinds of entity that can be found in a TAP file."""

    GAP = 1
    PAUSE = auto()
    CBM_HEAD = auto()
    CBM_DATA = auto()
    TT_HEAD = auto()
    TT_DATA = auto()
    FREE = auto()
    USGOLD = auto()
    ACES = auto()
    WILD = auto()
    WILD_STOP = auto()
    NOVA = auto()
    NOVA_SPC = auto()
    OCEAN_F1 = auto()
    OCEAN_F2 = auto()
    OCEAN_F3 = auto()
    CHR_T1 = auto()
    CHR_T2 = auto()
    CHR_T3 = auto()
    RASTER = auto()
    CYBER_F1 = auto()
    CYBER_F2 = auto()
    CYBER_F3 = auto()
    CYBER_F4_1 = auto()
    CYBER_F4_2 = auto()
    CYBER_F4_3 = auto()
    BLEEP = auto()
    BLEEP_TRIG = auto()
    BLEEP_SPC = auto()
    HITLOAD = auto()
    MICROLOAD = auto()
    BURNER = auto()
    RACKIT = auto()
    SPAV1_HD = auto()
    SPAV1 = auto()
    SPAV2_HD = auto()
    SPAV2 = auto()
    VIRGIN = auto()
    HITEC = auto()
    ANIROG = auto()
    VISI_T1 = auto()
    VISI_T2 = auto()
    VISI_T3 = auto()
    VISI_T4 = auto()
    SUPERTAPE_HEAD = auto()
    SUPERTAPE_DATA = auto()
    PAV = auto()
    IK = auto()
    FBIRD1 = auto()
    FBIRD2 = auto()
    TURR_HEAD = auto()
    TURR_DATA = auto()
    SEUCK_L2 = auto()
    SEUCK_HEAD = auto()
    SEUCK_DATA = auto()
    SEUCK_TRIG = auto()
    SEUCK_GAME = auto()
    JET = auto()
    FLASH = auto()
    TDI_F1 = auto()
    OCNEW1T1 = auto()
    OCNEW1T2 = auto()
    OCNEW2 = auto()
    ATLAN = auto()
    SNAKE51 = auto()
    SNAKE50T1 = auto()
    SNAKE50T2 = auto()
    PAL_F1 = auto()
    PAL_F2 = auto()
    ENIGMA = auto()
    AUDIOGENIC = auto()


class LoaderId(IntEnum):
    """Loader families, used for quick scanning via CRC lookup."""

    FREE = 1
    BLEEP = auto()
    CHR = auto()
    BURN = auto()
    WILD = auto()
    USG = auto()
    MIC = auto()
    ACE = auto()
    T250 = auto()
    RACK = auto()
    OCEAN = auto()
    RAST = auto()
    SPAV = auto()
    HIT = auto()
    ANI = auto()
    VIS1 = auto()
    VIS2 = auto()
    VIS3 = auto()
    VIS4 = auto()
    FIRE = auto()
    NOVA = auto()
    IK = auto()
    PAV = auto()
    CYBER = auto()
    VIRG = auto()
    HTEC = auto()
    FLASH = auto()
    SUPER = auto()
    OCNEW1T1 = auto()
    OCNEW1T2 = auto()
    ATLAN = auto()
    SNAKE = auto()
    OCNEW2 = auto()
    AUDIOGENIC = auto()


@dataclass(frozen=True)
class Format:
    """Description of a particular tape format."""

    name: str
    en: int = LSBF
    tp: int = NA
    sp: int = 0
    mp: int = NA
    lp: int = 0
    pv: int = NA
    sv: int = NA
    pmin: int = NA
    pmax: int = NA
    has_cs: bool = False


@dataclass
class Block:
    """One entity found in a TAP file."""

    lt: int
    p1: int = 0
    p2: int = 0
    p3: int = 0
    p4: int = 0
    xi: int = 0
    cs: int = 0
    ce: int = 0
    cx: int = 0
    dd: Optional[bytes] = None
    crc: int = 0
    rd_err: int = 0
    cs_exp: int = 0
    cs_act: int = 0
    pilot_len: int = 0
    trail_len: int = 0
    fn: Optional[str] = None
    ok: bool = False


def _empty_image() -> bytearray:
    return bytearray(TAP_SIGNATURE + bytes(HEADER_LEN - len(TAP_SIGNATURE)))


@dataclass
class Tap:
    """A loaded TAP image together with the information gathered about it."""

    data: bytearray = field(default_factory=_empty_image)
    path: str = ""
    name: str = ""
    version: int = 0
    blocks: list[Block] = field(default_factory=list)
    pst: list[int] = field(default_factory=lambda: [0] * 256)
    fst: list[int] = field(default_factory=lambda: [0] * 256)
    fsigcheck: bool = True
    fvercheck: bool = True
    fsizcheck: bool = True
    detected: int = 0
    detected_percent: int = 0
    purity: int = 0
    total_gaps: int = 0
    total_data_files: int = 0
    total_checksums: int = 0
    total_checksums_good: int = 0
    optimized_files: int = 0
    total_read_errors: int = 0
    fdate: int = 0
    taptime: float = 0.0
    bootable: int = 0
    changed: bool = False
    crc: int = 0
    cbmcrc: int = 0
    cbmid: Optional[int] = None
    cbmname: str = ""
    tst_hd: bool = False
    tst_rc: bool = False
    tst_op: bool = False
    tst_cs: bool = False
    tst_rd: bool = False

    @classmethod
    def from_bytes(cls, data) -> "Tap":
        """Build a Tap from a raw image, checking its header."""
        raw = bytearray(data)
        if len(raw) < HEADER_LEN:
            raise ValueError(
                f"TAP image too short: {len(raw)} bytes, header needs {HEADER_LEN}"
            )
        tap = cls(data=raw, version=raw[VERSION_OFFSET])
        tap.fsigcheck = bytes(raw[: len(TAP_SIGNATURE)]) == TAP_SIGNATURE
        tap.fvercheck = tap.version in (0, 1)
        tap.fsizcheck = tap.header_size() == tap.length - HEADER_LEN
        return tap

    @property
    def length(self) -> int:
        """Total length of the image in bytes, header included."""
        return len(self.data)

    def header_size(self) -> int:
        """Data size recorded in the header."""
        return int.from_bytes(self.data[SIZE_OFFSET:HEADER_LEN], "little")

    def fix_header_size(self) -> None:
        """Make the header's data size match the actual data length."""
        size = (self.length - HEADER_LEN) & 0xFFFFFFFF
        self.data[SIZE_OFFSET:HEADER_LEN] = size.to_bytes(4, "little")
        self.fsizcheck = True

    def set_version(self, version: int) -> None:
        """Set the TAP version, both in the header and on this object."""
        if version not in (0, 1):
            raise ValueError(f"unsupported TAP version: {version}")
        self.data[VERSION_OFFSET] = version
        self.version = version
        self.fvercheck = True