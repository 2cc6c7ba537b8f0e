"""Repairs on analysed TAP images: pulse cleaning, pilot and gap fixes and
pause insertion.

The functions here work from ``tap.blocks``, the block list produced by an
analysis pass. Each takes an ``analyze`` callable that rescans the image and
refreshes ``tap.blocks`` after a change. When ``analyze`` is None and the
layout of the image changed, ``tap.blocks`` is emptied, since its offsets no
longer describe the data.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Mapping, Optional

from .definitions import DEFTOL, MSBF, NA, Block, Format, LoaderType, Tap
from .pauses import cut_range

log = logging.getLogger(__name__)

Analyzer = Optional[Callable[[Tap], None]]
ByteReader = Callable[[Tap, int, int, int, int, int], int]

BOOT_PILOT_PULSES = 0x6A00
"""Length of a fresh CBM boot pilot tone, in pulses."""

CBM_SYNC_PULSES = 9 * 20
"""Pulses taken by the sync sequence ahead of a CBM header's data."""

STANDARD_CBM_PAUSE = 320000
"""Cycles of pause between a CBM header and its data file (0.32 seconds)."""

INSERTED_PAUSE = b"\x00\x20\x4e\x00"
"""The v1 pause entry inserted by :func:`insert_pauses` (20,000 cycles)."""

_VISILOAD = frozenset(
    {LoaderType.VISI_T1, LoaderType.VISI_T2, LoaderType.VISI_T3, LoaderType.VISI_T4}
)
_SUPERTAPE = frozenset({LoaderType.SUPERTAPE_HEAD, LoaderType.SUPERTAPE_DATA})


def _rescan(tap: Tap, analyze: Analyzer, layout_changed: bool = True) -> None:
    if analyze is not None:
        analyze(tap)
    elif layout_changed:
        tap.blocks = []


def _replace(tap: Tap, data: bytearray) -> None:
    tap.data = data
    tap.fix_header_size()
    tap.changed = True


def _pairs(blocks: list[Block]):
    return zip(blocks, blocks[1:])


def _triples(blocks: list[Block]):
    return zip(blocks, blocks[1:], blocks[2:])


def _is_data(lt: int) -> bool:
    """Data files are every block type other than gaps and pauses."""
    return lt > LoaderType.PAUSE


def _type_name(lt: int) -> str:
    try:
        return LoaderType(lt).name
    except ValueError:
        return str(lt)


def _cut_all(tap: Tap, cuts: list[tuple[int, int]]) -> None:
    # Cutting from the back keeps the earlier offsets valid.
    for start, end in reversed(cuts):
        cut_range(tap, start, end)


def _nearest_table(fmt: Format, k: int) -> bytes:
    """Map each pulse within ``k`` of exactly one ideal width onto it.

    A pulse near two ideals goes to the closer one and is left alone if it
    is equally near both; one near all three is left alone.
    """
    ideals = [p for p in (fmt.sp, fmt.mp, fmt.lp) if p > 0]
    table = bytearray(range(256))
    for b in range(256):
        near = [p for p in ideals if abs(b - p) < k]
        if len(near) == 1:
            table[b] = near[0]
        elif len(near) == 2:
            first, second = (abs(b - p) for p in near)
            if first < second:
                table[b] = near[0]
            elif first > second:
                table[b] = near[1]
    return bytes(table)


def _threshold_table(fmt: Format, limit: int) -> bytes:
    """Map pulses either side of the threshold onto the long or short ideal."""
    table = bytearray(range(256))
    for b in range(256):
        if fmt.tp < b < fmt.lp + limit:
            table[b] = fmt.lp
        elif fmt.sp - limit < b < fmt.tp:
            table[b] = fmt.sp
    return bytes(table)


def clean_files(
    tap: Tap,
    formats: Mapping[int, Format],
    tolerance: int = DEFTOL,
    boost: bool = False,
    analyze: Analyzer = None,
) -> None:
    """Rewrite the pulses of every data block to its format's ideal widths.

    Formats with a threshold pulse snap each pulse to the short or long ideal
    by which side of the threshold it falls on; pulses equal to the threshold
    are kept. Other formats are cleaned with a tolerance growing from 2 up to
    ``tolerance + 1`` (ten more with ``boost``). Gaps that follow Novaload
    blocks are flattened to the Novaload short pulse. ``formats`` maps each
    block type found to its :class:`Format`.
    """
    if analyze is not None:
        analyze(tap)

    limit = tolerance + 2 + (10 if boost else 0)
    for block in tap.blocks:
        if not _is_data(block.lt):
            continue
        fmt = formats[block.lt]
        start, end = block.p1, block.p4
        log.info("Cleaning %s tape block from $%04X to $%04X.", fmt.name, start, end)
        segment = bytes(tap.data[start:end + 1])
        if fmt.tp == NA:
            for k in range(2, limit):
                segment = segment.translate(_nearest_table(fmt, k))
        else:
            segment = segment.translate(_threshold_table(fmt, limit))
        tap.data[start:end + 1] = segment
    tap.changed = True

    for block, gap in _pairs(tap.blocks):
        if block.lt == LoaderType.NOVA and gap.lt == LoaderType.GAP:
            width = gap.p4 + 1 - gap.p1
            tap.data[gap.p1:gap.p4 + 1] = bytes([formats[LoaderType.NOVA].sp]) * width

    _rescan(tap, analyze, layout_changed=False)


def fix_boot_pilot(tap: Tap, formats: Mapping[int, Format], analyze: Analyzer = None) -> bool:
    """Replace everything before the first CBM header's sync with a new pilot.

    Only bootable images are changed; returns True if the pilot was rebuilt.
    Raises ValueError if a bootable image has no CBM header block.
    """
    if not tap.bootable:
        return False
    header = next((b for b in tap.blocks if b.lt == LoaderType.CBM_HEAD), None)
    if header is None:
        raise ValueError("bootable TAP has no CBM header block")
    log.info("Creating new CBM boot pilot...")

    sync = header.p2 - CBM_SYNC_PULSES
    pilot = bytes([formats[LoaderType.CBM_HEAD].sp]) * BOOT_PILOT_PULSES
    header_bytes = tap.data[: len(tap.data) - len(tap.data) + 20]
    _replace(tap, bytearray(header_bytes + pilot + tap.data[sync:]))
    _rescan(tap, analyze)
    return True


def standardize_pauses(tap: Tap) -> int:
    """Set each pause between a CBM header and its data file to 0.32 seconds.

    Works on v1 images only; returns the number of pauses changed. The block
    layout is unchanged, so no rescan is needed.
    """
    if tap.version != 1:
        return 0
    log.info("Standardizing pauses between 'C64 ROM tape' files...")
    value = STANDARD_CBM_PAUSE.to_bytes(3, "little")
    changed = 0
    for first, pause, third in _triples(tap.blocks):
        if (
            first.lt == LoaderType.CBM_HEAD
            and pause.lt == LoaderType.PAUSE
            and third.lt == LoaderType.CBM_DATA
        ):
            tap.data[pause.p1 + 1:pause.p1 + 4] = value
            changed += 1
    log.info("Changed %d.", changed)
    return changed


def _broken_pilots(blocks: list[Block], width: int) -> list[tuple[int, int, int]]:
    """Find (gap offset, data type, pulses to copy) for repairable gaps."""
    found = []
    for i, (gap, data) in enumerate(_pairs(blocks)):
        if gap.lt != LoaderType.GAP or not _is_data(data.lt):
            continue
        previous = blocks[i - 1].lt if i > 0 else 0
        if previous != LoaderType.PAUSE and gap.p1 != 20:
            continue
        if gap.xi != width:
            continue
        if data.lt in _SUPERTAPE:
            copy = 0
        elif data.lt in _VISILOAD:
            copy = 8 + (data.xi & 7)
        else:
            copy = 8
        found.append((gap.p1, data.lt, copy))
    return found


def fix_pilots(tap: Tap, analyze: Analyzer = None) -> int:
    """Replace broken pilot bytes (gaps of 5 to 15 pulses) ahead of data files.

    A gap qualifies when it is at the start of the image or follows a pause,
    and is followed by a data file. It is replaced by a copy of the file's
    first pilot byte (its first 8 pulses; Visiload files take a width from
    the block, Supertape gaps are just cut). Works on v1 images only; returns
    the number of pilots fixed.
    """
    if tap.version != 1:
        return 0
    log.info("Fixing broken pilot bytes...")
    total = 0
    for width in range(5, 16):
        fixes = _broken_pilots(tap.blocks, width)
        if not fixes:
            continue
        data = tap.data
        out = bytearray()
        start = 0
        for offset, lt, copy in fixes:
            log.info("Fixed %s pilot byte @ $%04X (%d pulses)", _type_name(lt), offset, width)
            out += data[start:offset]
            out += data[offset + width:offset + width + copy]
            start = offset + width
        out += data[start:]
        _replace(tap, out)
        total += len(fixes)
        _rescan(tap, analyze)
    return total


def fix_prepausegaps(tap: Tap, analyze: Analyzer = None) -> int:
    """Cut gaps of fewer than 5 pulses that come just before a pause (v1 only)."""
    if tap.version != 1:
        return 0
    log.info("Cutting small pre-pause gaps...")
    cuts = [
        (gap.p1, gap.p4)
        for gap, pause in _pairs(tap.blocks)
        if gap.lt == LoaderType.GAP and gap.xi < 5 and pause.lt == LoaderType.PAUSE
    ]
    _cut_all(tap, cuts)
    log.info("Cut %d.", len(cuts))
    _rescan(tap, analyze, layout_changed=bool(cuts))
    return len(cuts)


def fix_postpausegaps(tap: Tap, analyze: Analyzer = None) -> int:
    """Cut gaps of fewer than 5 pulses that come just after a pause (v1 only)."""
    if tap.version != 1:
        return 0
    log.info("Cutting small post-pause gaps...")
    cuts = [
        (gap.p1, gap.p4)
        for pause, gap in _pairs(tap.blocks)
        if pause.lt == LoaderType.PAUSE and gap.lt == LoaderType.GAP and gap.xi < 5
    ]
    _cut_all(tap, cuts)
    log.info("Cut %d.", len(cuts))
    _rescan(tap, analyze, layout_changed=bool(cuts))
    return len(cuts)


def _pause_points(blocks: list[Block]) -> Iterable[int]:
    for first, second, third in _triples(blocks):
        t1, t2, t3 = first.lt, second.lt, third.lt
        short_gap = t2 == LoaderType.GAP and second.xi == 8
        if (
            t1 == LoaderType.CBM_HEAD
            and t2 == LoaderType.GAP
            and 60 < second.xi < 90
            and t3 == LoaderType.CBM_DATA
        ):
            yield second.p4 + 1
        if (
            (t1 == LoaderType.CBM_HEAD and t2 == LoaderType.CBM_DATA)
            or (t1 == LoaderType.CBM_DATA and t2 == LoaderType.CBM_HEAD)
            or (t1 == LoaderType.BLEEP and t2 == LoaderType.BLEEP)
            or (t1 == LoaderType.BLEEP and short_gap and t3 == LoaderType.BLEEP)
            or (t1 == LoaderType.CYBER_F3 and t2 == LoaderType.CYBER_F3)
            or (t1 == LoaderType.CYBER_F3 and short_gap and t3 == LoaderType.CYBER_F3)
        ):
            yield first.p4 + 1


def insert_pauses(tap: Tap, analyze: Analyzer = None) -> int:
    """Insert 20,000 cycle pauses between blocks that should be separated.

    Covers CBM header and data files, consecutive Bleepload blocks and
    consecutive Cyberload F3 blocks. Works on v1 images only; returns the
    number of pauses inserted.
    """
    if tap.version != 1:
        return 0
    log.info("Inserting absent pauses...")
    points = sorted({p for p in _pause_points(tap.blocks) if p < tap.length})
    if points:
        data = tap.data
        out = bytearray()
        previous = 0
        for point in points:
            out += data[previous:point]
            out += INSERTED_PAUSE
            previous = point
        out += data[previous:]
        _replace(tap, out)
    log.info("Inserted %d.", len(points))
    _rescan(tap, analyze, layout_changed=bool(points))
    return len(points)


def cut_postdata_gaps(tap: Tap, analyze: Analyzer = None) -> int:
    """Cut gaps of fewer than 20 pulses that follow a data file.

    Returns the number of gaps cut.
    """
    cuts = [
        (gap.p1, gap.p4)
        for data, gap in _pairs(tap.blocks)
        if gap.lt == LoaderType.GAP and gap.xi < 20 and _is_data(data.lt)
    ]
    log.info("Cutting post-data garbage...")
    if not cuts:
        log.info("None found.")
        return 0
    _cut_all(tap, cuts)
    log.info("Cut %d.", len(cuts))
    _rescan(tap, analyze)
    return len(cuts)


def fill_cbm_tone(tap: Tap, formats: Mapping[int, Format], analyze: Analyzer = None) -> int:
    """Overwrite gaps of about 80 pulses between a CBM file and a pause with
    CBM pilot tone, so that a rescan sees them as tone.

    Returns the number of gaps filled; the image length does not change.
    """
    tone = formats[LoaderType.CBM_HEAD].sp
    filled = 0
    for first, gap, third in _triples(tap.blocks):
        if (
            first.lt in (LoaderType.CBM_DATA, LoaderType.CBM_HEAD)
            and gap.lt == LoaderType.GAP
            and third.lt == LoaderType.PAUSE
            and 70 < gap.xi < 85
        ):
            tap.data[gap.p1:gap.p1 + gap.xi] = bytes([tone]) * gap.xi
            filled += 1
    if filled:
        tap.changed = True
        log.info("Overwrote CBM pilot tone gap(s).")
        _rescan(tap, analyze, layout_changed=False)
    return filled


def fix_bleep_pilots(
    tap: Tap,
    formats: Mapping[int, Format],
    read_byte: ByteReader,
    analyze: Analyzer = None,
) -> int:
    """Repair Bleepload pilots whose start has been damaged into a gap.

    A gap followed by a Bleepload block is overwritten with long pulses when
    the gap (at 8 pulses a byte) and the block's pilot together come to
    roughly 256 bytes and the block starts with a $FF pilot byte.
    ``read_byte(tap, pos, lp, sp, tp, endian)`` reads one byte from the
    image. Works on v1 images only; returns the number of gaps repaired.
    """
    if tap.version != 1:
        return 0
    log.info("Looking for Bleepload (block 0) pre-pilot corruptions...")
    bleep = formats[LoaderType.BLEEP]
    damaged: list[Block] = []
    for number, (gap, block) in enumerate(_pairs(tap.blocks), start=1):
        if gap.lt != LoaderType.GAP:
            continue
        if block.lt not in (LoaderType.BLEEP, LoaderType.BLEEP_SPC):
            continue
        pilot = (block.p2 - block.p1) // 8 - 2
        combined = gap.xi // 8 + pilot
        if not 240 < combined < 260:
            continue
        if read_byte(tap, block.p1, bleep.lp, bleep.sp, bleep.tp, MSBF) != 0xFF:
            continue
        log.info("block no=%d | existing pilot + (gap/8) = %d pilots", number, combined)
        damaged.append(gap)

    if not damaged:
        log.info("None found.")
        return 0
    for gap in damaged:
        width = gap.p4 + 1 - gap.p1
        tap.data[gap.p1:gap.p4 + 1] = bytes([bleep.lp]) * width
    tap.changed = True
    log.info("Found %d damaged bleepload pre-pilots and fixed them all.", len(damaged))
    _rescan(tap, analyze, layout_changed=False)
    return len(damaged)