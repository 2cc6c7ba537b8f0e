import pytest

from tapremaster.definitions import HEADER_LEN, MSBF, Block, Format, LoaderType as LT, Tap
from tapremaster.repair import (
    BOOT_PILOT_PULSES,
    INSERTED_PAUSE,
    STANDARD_CBM_PAUSE,
    clean_files,
    cut_postdata_gaps,
    fill_cbm_tone,
    fix_bleep_pilots,
    fix_boot_pilot,
    fix_pilots,
    fix_postpausegaps,
    fix_prepausegaps,
    insert_pauses,
    standardize_pauses,
)

CBM = Format("C64 ROM-TAPE", sp=0x30, mp=0x42, lp=0x56)
FORMATS = {
    LT.CBM_HEAD: CBM,
    LT.CBM_DATA: CBM,
    LT.TT_HEAD: Format("TURBOTAPE-250", tp=0x20, sp=0x1A, lp=0x28),
    LT.TT_DATA: Format("TWO PULSE", sp=0x30, lp=0x80),
    LT.NOVA: Format("NOVALOAD", tp=0x3D, sp=0x24, lp=0x56),
    LT.BLEEP: Format("BLEEPLOAD", en=MSBF, tp=0x47, sp=0x36, lp=0x56),
}


def make_tap(body, version=1, blocks=()):
    tap = Tap()
    tap.data = bytearray(tap.data[:HEADER_LEN] + bytes(body))
    tap.fix_header_size()
    tap.set_version(version)
    tap.blocks = list(blocks)
    return tap


class Counter:
    def __init__(self):
        self.calls = 0

    def __call__(self, tap):
        self.calls += 1


def test_clean_files_snaps_to_nearest_ideal():
    pulses = [0x31, 0x2F, 0x43, 0x55, 0x39, 0x90]
    tap = make_tap(pulses + [0x31, 0x31], blocks=[
        Block(LT.CBM_HEAD, p1=20, p4=25),
        Block(LT.GAP, p1=26, p4=27),
    ])
    clean_files(tap, FORMATS)
    assert list(tap.data[20:26]) == [CBM.sp, CBM.sp, CBM.mp, CBM.lp, 0x39, 0x90]
    assert list(tap.data[26:28]) == [0x31, 0x31]
    assert tap.changed


def test_clean_files_threshold_format():
    fmt = FORMATS[LT.TT_HEAD]
    tap = make_tap([0x29, 0x19, 0x20, 0x24, 0x1C, 0x60], blocks=[Block(LT.TT_HEAD, p1=20, p4=25)])
    clean_files(tap, FORMATS)
    assert list(tap.data[20:]) == [fmt.lp, fmt.sp, fmt.tp, fmt.lp, fmt.sp, 0x60]


def test_clean_files_boost_widens_tolerance():
    blocks = [Block(LT.TT_DATA, p1=20, p4=20)]
    plain = make_tap([0x3E], blocks=blocks)
    clean_files(plain, FORMATS)
    assert plain.data[20] == 0x3E
    boosted = make_tap([0x3E], blocks=blocks)
    clean_files(boosted, FORMATS, boost=True)
    assert boosted.data[20] == FORMATS[LT.TT_DATA].sp


def test_clean_files_flattens_nova_trailer_and_rescans():
    nova = FORMATS[LT.NOVA]
    tap = make_tap([nova.sp] * 4 + [0x70, 0x10, 0x99, 0x05], blocks=[
        Block(LT.NOVA, p1=20, p4=23),
        Block(LT.GAP, p1=24, p4=27),
    ])
    counter = Counter()
    clean_files(tap, FORMATS, analyze=counter)
    assert bytes(tap.data[24:28]) == bytes([nova.sp]) * 4
    assert counter.calls == 2
    assert len(tap.blocks) == 2


def test_fix_boot_pilot_rebuilds_pilot():
    body = bytes(i % 251 + 1 for i in range(400))
    tap = make_tap(body, blocks=[Block(LT.CBM_HEAD, p1=20, p2=320, p4=399)])
    tap.bootable = 1
    original = bytes(tap.data)
    assert fix_boot_pilot(tap, FORMATS) is True
    assert bytes(tap.data[20:20 + BOOT_PILOT_PULSES]) == bytes([CBM.sp]) * BOOT_PILOT_PULSES
    assert bytes(tap.data[20 + BOOT_PILOT_PULSES:]) == original[140:]
    assert tap.header_size() == tap.length - HEADER_LEN
    assert tap.blocks == []


def test_fix_boot_pilot_ignores_unbootable():
    tap = make_tap(bytes(50), blocks=[Block(LT.CBM_HEAD, p1=20, p2=40, p4=60)])
    before = bytes(tap.data)
    assert fix_boot_pilot(tap, FORMATS) is False
    assert bytes(tap.data) == before


def test_fix_boot_pilot_requires_header():
    tap = make_tap(bytes(50), blocks=[Block(LT.CBM_DATA, p1=20, p4=60)])
    tap.bootable = 1
    with pytest.raises(ValueError):
        fix_boot_pilot(tap, FORMATS)


def test_standardize_pauses_sets_cbm_gap():
    body = bytearray(40)
    body[10:14] = b"\x00\x20\x4e\x00"
    blocks = [
        Block(LT.CBM_HEAD, p1=20, p4=29),
        Block(LT.PAUSE, p1=30, p4=33),
        Block(LT.CBM_DATA, p1=34, p4=59),
    ]
    tap = make_tap(body, blocks=blocks)
    assert standardize_pauses(tap) == 1
    assert bytes(tap.data[31:34]) == STANDARD_CBM_PAUSE.to_bytes(3, "little")
    assert tap.data[30] == 0


def test_standardize_pauses_needs_v1():
    tap = make_tap(bytes(40), version=0, blocks=[
        Block(LT.CBM_HEAD, p1=20, p4=29),
        Block(LT.PAUSE, p1=30, p4=33),
        Block(LT.CBM_DATA, p1=34, p4=59),
    ])
    assert standardize_pauses(tap) == 0
    assert bytes(tap.data[20:]) == bytes(40)


GAP_PULSES = bytes([0x10, 0x11, 0x12, 0x13, 0x14])
DATA_PULSES = bytes(range(0x30, 0x40))


def test_fix_pilots_replaces_gap_with_pilot_copy():
    tap = make_tap(GAP_PULSES + DATA_PULSES, blocks=[
        Block(LT.GAP, p1=20, p4=24, xi=5),
        Block(LT.TT_HEAD, p1=25, p4=40),
    ])
    header = bytes(tap.data[:HEADER_LEN])
    assert fix_pilots(tap) == 1
    assert bytes(tap.data[HEADER_LEN:]) == DATA_PULSES[:8] + DATA_PULSES
    assert bytes(tap.data[:12]) == header[:12]
    assert tap.header_size() == tap.length - HEADER_LEN


def test_fix_pilots_cuts_supertape_gap():
    tap = make_tap(GAP_PULSES + DATA_PULSES, blocks=[
        Block(LT.GAP, p1=20, p4=24, xi=5),
        Block(LT.SUPERTAPE_HEAD, p1=25, p4=40),
    ])
    counter = Counter()
    fix_pilots(tap, analyze=counter)
    assert bytes(tap.data[HEADER_LEN:]) == DATA_PULSES
    assert counter.calls == 1


def test_fix_pilots_needs_pause_or_start():
    tap = make_tap(GAP_PULSES + GAP_PULSES + DATA_PULSES, blocks=[
        Block(LT.TT_DATA, p1=20, p4=24),
        Block(LT.GAP, p1=25, p4=29, xi=5),
        Block(LT.TT_HEAD, p1=30, p4=45),
    ])
    before = bytes(tap.data)
    assert fix_pilots(tap) == 0
    assert bytes(tap.data) == before


def test_fix_prepausegaps_cuts_gap():
    body = bytes(range(1, 21))
    tap = make_tap(body, blocks=[
        Block(LT.CBM_DATA, p1=20, p4=29),
        Block(LT.GAP, p1=30, p4=32, xi=3),
        Block(LT.PAUSE, p1=33, p4=36),
    ])
    original = bytes(tap.data)
    assert fix_prepausegaps(tap) == 1
    assert bytes(tap.data) [HEADER_LEN:] == original[HEADER_LEN:30] + original[33:]


def test_fix_postpausegaps_cuts_gap():
    body = bytes(range(1, 21))
    tap = make_tap(body, blocks=[
        Block(LT.PAUSE, p1=20, p4=23),
        Block(LT.GAP, p1=24, p4=26, xi=3),
        Block(LT.CBM_DATA, p1=27, p4=39),
    ])
    original = bytes(tap.data)
    assert fix_postpausegaps(tap) == 1
    assert bytes(tap.data)[HEADER_LEN:] == original[HEADER_LEN:24] + original[27:]


def test_fix_postpausegaps_leaves_v0():
    tap = make_tap(bytes(20), version=0, blocks=[
        Block(LT.PAUSE, p1=20, p4=23),
        Block(LT.GAP, p1=24, p4=26, xi=3),
        Block(LT.CBM_DATA, p1=27, p4=39),
    ])
    assert fix_postpausegaps(tap) == 0
    assert tap.length == HEADER_LEN + 20


def test_insert_pauses_none_needed_still_rescans():
    tap = make_tap(bytes(range(1, 31)), blocks=[
        Block(LT.TT_HEAD, p1=20, p4=29),
        Block(LT.TT_DATA, p1=30, p4=39),
        Block(LT.GAP, p1=40, p4=49, xi=10),
    ])
    counter = Counter()
    before = bytes(tap.data)
    assert insert_pauses(tap, analyze=counter) == 0
    assert bytes(tap.data) == before
    assert counter.calls == 1


def test_cut_postdata_gaps_ignores_long_gap():
    tap = make_tap(bytes(range(1, 61)), blocks=[
        Block(LT.CBM_DATA, p1=20, p4=29),
        Block(LT.GAP, p1=30, p4=54, xi=25),
        Block(LT.CBM_DATA, p1=55, p4=79),
    ])
    before = bytes(tap.data)
    assert cut_postdata_gaps(tap) == 0
    assert bytes(tap.data) == before


def _tone_blocks(xi):
    return [
        Block(LT.CBM_DATA, p1=20, p4=29),
        Block(LT.GAP, p1=30, p4=30 + xi - 1, xi=xi),
        Block(LT.PAUSE, p1=30 + xi, p4=33 + xi),
    ]


def test_fill_cbm_tone_overwrites_gap():
    tap = make_tap(bytes(range(1, 95)), blocks=_tone_blocks(80))
    original = bytes(tap.data)
    assert fill_cbm_tone(tap, FORMATS) == 1
    assert bytes(tap.data[30:110]) == bytes([CBM.sp]) * 80
    assert bytes(tap.data[110:]) == original[110:]
    assert tap.length == len(original)


def test_fill_cbm_tone_ignores_other_gaps():
    tap = make_tap(bytes(range(1, 95)), blocks=_tone_blocks(50))
    before = bytes(tap.data)
    assert fill_cbm_tone(tap, FORMATS) == 0
    assert bytes(tap.data) == before


def _bleep_tap():
    body = bytes(range(1, 81)) + bytes([0x36]) * (8 * 240 + 10)
    return make_tap(body, blocks=[
        Block(LT.GAP, p1=20, p4=99, xi=80),
        Block(LT.BLEEP, p1=100, p2=100 + 8 * 240, p4=20 + len(body) - 1),
    ])


def test_fix_bleep_pilots_repairs_gap():
    tap = _bleep_tap()
    calls = []

    def reader(t, pos, lp, sp, tp, endian):
        calls.append((pos, lp, sp, tp, endian))
        return 0xFF

    bleep = FORMATS[LT.BLEEP]
    assert fix_bleep_pilots(tap, FORMATS, reader) == 1
    assert bytes(tap.data[20:100]) == bytes([bleep.lp]) * 80
    assert calls == [(100, bleep.lp, bleep.sp, bleep.tp, MSBF)]


def test_fix_bleep_pilots_needs_ff_pilot_byte():
    tap = _bleep_tap()
    before = bytes(tap.data)
    assert fix_bleep_pilots(tap, FORMATS, lambda *args: 0x00) == 0
    assert bytes(tap.data) == before
    assert not tap.changed