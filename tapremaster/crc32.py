"""CRC32 checksums as used for identifying tape data files."""

from __future__ import annotations

CRC32_POLYNOMIAL = 0xEDB88320


def _build_table() -> tuple[int, ...]:
    table = []
    for value in range(256):
        crc = value
        for _ in range(8):
            crc = (crc >> 1) ^ CRC32_POLYNOMIAL if crc & 1 else crc >> 1
        table.append(crc)
    return tuple(table)


_TABLE = _build_table()


def compute_crc32(data) -> int:
    """Return the CRC32 of ``data``.

    The register starts at 0xFFFFFFFF and is not inverted at the end.
    Empty input gives 0.
    """
    if not data:
        return 0
    crc = 0xFFFFFFFF
    for byte in bytes(data):
        crc = (crc >> 8) ^ _TABLE[(crc ^ byte) & 0xFF]
    return crc