"""Pause handling and structural edits on TAP images: clipping, unifying,
version conversion, range cutting and trailing pauses."""

from __future__ import annotations

import logging
from itertools import accumulate, groupby

from .definitions import HEADER_LEN, LAME, Tap

log = logging.getLogger(__name__)

CYCLES_PER_ZERO = 20000
"""Cycles represented by one v0 pause byte (1/50 second)."""

MAX_PAUSE_CYCLES = 0xFFFFFF
"""Largest pause a single v1 entry can hold (about 17 seconds)."""

TRAIL_PAUSE_CYCLES = 0x4B2B20
"""Length of the trailing pause added by :func:`add_trailpause` (5 seconds)."""

_CLIP_WINDOW = 100
_UNIFY_WINDOW = 30


def _pause_entry(cycles: int) -> bytes:
    """A v1 pause: a zero byte followed by a 24-bit little-endian cycle count."""
    return b"\x00" + min(cycles, MAX_PAUSE_CYCLES).to_bytes(3, "little")


def _read24(data: bytes, pos: int) -> int:
    return int.from_bytes(bytes(data[pos:pos + 3]).ljust(3, b"\x00"), "little")


def _replace_data(tap: Tap, data: bytearray) -> None:
    tap.data = data
    tap.fix_header_size()
    tap.changed = True


def _zero_ff_pulses(tap: Tap) -> None:
    """Turn $FF pulses into pauses; some old v0 images use them."""
    body = tap.data[HEADER_LEN:]
    tap.data[HEADER_LEN:] = body.replace(b"\xff", b"\x00")


def clip_ends(tap: Tap) -> bool:
    """Remove leading and trailing pauses from a v0 image.

    $FF pulses are turned into pauses first. Returns True if anything was
    clipped, False if no clipping was needed (including an image that is all
    pause). Raises ValueError if the image is not v0 or has fewer than 100
    pulses.
    """
    if tap.version > 0:
        raise ValueError("clipping needs a v0 TAP")
    n = tap.length
    if n - HEADER_LEN < _CLIP_WINDOW:
        raise ValueError("TAP is too short to clip")

    _zero_ff_pulses(tap)
    data = tap.data
    pre = [0, *accumulate(1 if b < LAME else 0 for b in data)]

    def clean(i: int) -> bool:
        return pre[i + _CLIP_WINDOW] == pre[i]

    last = n - _CLIP_WINDOW
    start = next((i for i in range(HEADER_LEN, last) if clean(i)), max(HEADER_LEN, last))
    back = next((i for i in range(last, HEADER_LEN, -1) if clean(i)), HEADER_LEN)
    end = back + _CLIP_WINDOW
    if back == HEADER_LEN:
        # The whole image is pause: keep everything.
        start, end = HEADER_LEN, n

    if start == HEADER_LEN and end == n:
        log.info("No clipping required.")
        return False

    _replace_data(tap, bytearray(data[:HEADER_LEN] + data[start:end]))
    log.info("Clipped %d leading and %d trailing bytes.", start - HEADER_LEN, n - end)
    return True


def _unify_v1(data: bytearray) -> bytearray:
    out = bytearray(data[:HEADER_LEN])
    n = len(data)
    i = HEADER_LEN
    while i < n:
        if data[i] != 0:
            out.append(data[i])
            i += 1
            continue
        if i + 3 >= n:
            # Incomplete pause entry at the very end is dropped.
            break
        total = _read24(data, i + 1)
        count = 1
        while i + count * 4 < n and data[i + count * 4] == 0:
            total += _read24(data, i + count * 4 + 1)
            count += 1
        i += count * 4

        if total > MAX_PAUSE_CYCLES:
            out += _pause_entry(MAX_PAUSE_CYCLES)
            continue
        rest = total % CYCLES_PER_ZERO
        total -= rest
        if rest > CYCLES_PER_ZERO // 2:
            total += CYCLES_PER_ZERO
        out += _pause_entry(max(total, CYCLES_PER_ZERO))
    return out


def _unify_v0(data: bytearray) -> bytearray:
    n = len(data)
    lame = [b <= LAME for b in data]
    next_lame = [n] * (n + 1)
    for k in range(n - 1, -1, -1):
        next_lame[k] = k if lame[k] else next_lame[k + 1]

    out = bytearray(data[:HEADER_LEN])
    i = HEADER_LEN
    while i < n:
        if not lame[i]:
            out.append(data[i])
            i += 1
            continue
        # Find the nearest following window of pulses that holds no noise.
        s = i
        while next_lame[s] < min(s + _UNIFY_WINDOW, n):
            s = next_lame[s] + 1
        cycles = sum(CYCLES_PER_ZERO if b == 0 else b * 8 for b in data[i:s])
        out += bytes(max(cycles // CYCLES_PER_ZERO, 1))
        i = s
    return out


def unify_pauses(tap: Tap) -> None:
    """Merge consecutive pauses into one.

    On v1 images runs of pause entries become one entry, rounded to a
    multiple of 20,000 cycles (at least 20,000). On v0 images each stretch of
    pauses and noise pulses is rebuilt as the right number of zero bytes.
    Raises ValueError for any other version.
    """
    if tap.version == 1:
        log.info("Unifying pauses (v1)...")
        data = _unify_v1(tap.data)
    elif tap.version == 0:
        log.info("Unifying pauses (v0)...")
        data = _unify_v0(tap.data)
    else:
        raise ValueError(f"cannot unify pauses in TAP version {tap.version}")
    _replace_data(tap, data)


def convert_to_v1(tap: Tap) -> bool:
    """Convert a v0 image to v1; returns False if it already is v1."""
    if tap.version == 1:
        return False
    if tap.version != 0:
        raise ValueError(f"cannot convert TAP version {tap.version}")
    log.info("Converting to TAP v1...")
    _zero_ff_pulses(tap)

    out = bytearray(tap.data[:HEADER_LEN])
    for is_zero, run in groupby(tap.data[HEADER_LEN:], key=lambda b: b == 0):
        if is_zero:
            out += _pause_entry(sum(1 for _ in run) * CYCLES_PER_ZERO)
        else:
            out.extend(run)
    _replace_data(tap, out)
    tap.set_version(1)
    return True


def convert_to_v0(tap: Tap) -> bool:
    """Convert a v1 image to v0; returns False if it already is v0.

    Each pause becomes one zero byte per 20,000 cycles, and at least one.
    """
    if tap.version == 0:
        return False
    if tap.version != 1:
        raise ValueError(f"cannot convert TAP version {tap.version}")
    log.info("Converting to TAP v0...")

    data = tap.data
    out = bytearray(data[:HEADER_LEN])
    i = HEADER_LEN
    while i < len(data):
        b = data[i]
        if b != 0:
            out.append(b)
            i += 1
        else:
            out += bytes(max(_read24(data, i + 1) // CYCLES_PER_ZERO, 1))
            i += 4
    _replace_data(tap, out)
    tap.set_version(0)
    return True


def cut_range(tap: Tap, start: int, end: int) -> None:
    """Remove the bytes from ``start`` to ``end`` inclusive from the data area."""
    if not HEADER_LEN <= start <= end < tap.length:
        raise ValueError(
            f"range {start}..{end} is not inside the data area "
            f"{HEADER_LEN}..{tap.length - 1}"
        )
    _replace_data(tap, tap.data[:start] + tap.data[end + 1:])


def add_trailpause(tap: Tap) -> None:
    """Append a 5 second pause to a v1 image."""
    if tap.version != 1:
        raise ValueError("a trailing pause can only be added to a v1 TAP")
    log.info("Adding 5 second trailing pause...")
    _replace_data(tap, tap.data + _pause_entry(TRAIL_PAUSE_CYCLES))