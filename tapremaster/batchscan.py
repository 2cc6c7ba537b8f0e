"""Scan every TAP file below a directory and write a summary report and CSV."""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Optional

from .definitions import DEFTOL, FTVERSION, LoaderId, Tap
from .filesearch import SearchType, clip_list, get_dir_list, get_file_list, sort_list

log = logging.getLogger(__name__)

MAXTAPS = 8000
"""Most TAP files taken into one batch scan."""

REPORT_NAME = "batch_report.txt"
CSV_NAME = "batch.csv"

_HEADERS = (
    "Name", "Detected", "Rec", "Hdr", "Opt", "Chks", "Read", "Files",
    "Gaps", "CRC32", "Ver", "Var", "Size", "cbmCRC32", "LoaderID",
)

_KEY = (
    "Name     - The name of the tap file.",
    "Detected - The percentage of the tap file that contains known files.",
    "Rec      - Recognized : Test result for capacity of the tap filled with known files (see 'Detected').",
    "Hdr      - Header : Test result for the tap file header.",
    "Opt      - Optimized : Test result for the optimization status of known files stored in the tap.",
    "Chks     - Checksums : Test result for all checksums found in known files stored in the tap.",
    "Read     - Read Errors : Test result for read errors present in known files stored in the tap.",
    "Files    - The total number of valid files found in the tap.",
    "Gaps     - The total number of gaps found in the tap.",
    "CRC32    - The overall CRC32 checksum of all files stored in the tap.",
    "Ver      - Version : The tap file version.",
    "Var      - Variations : The number of unique byte values present in the data section of the tap file.",
    "Size     - The size of the tap file in bytes.",
    "cbmCRC32 - The CRC32 checksum of the first CBM DATA file (if any) found in the tap.",
    "LoaderID - The name of the loader program contained in the first CBM DATA file (if exists\\is known).",
)

Scanner = Callable[[str], Optional[Tap]]


@dataclass
class TapResult:
    """What a batch scan found out about one TAP file."""

    path: str
    name: str = ""
    length: int = 0
    detected_percent: int = 0
    purity: int = 0
    total_data_files: int = 0
    total_gaps: int = 0
    fdate: int = 0
    version: int = 0
    crc: int = 0
    cbmcrc: int = 0
    cbmid: Optional[int] = None
    cbmname: str = ""
    tst_hd: bool = False
    tst_rc: bool = False
    tst_op: bool = False
    tst_cs: bool = False
    tst_rd: bool = False
    valid: bool = True

    def failed(self) -> bool:
        """True if the file was not a valid TAP or failed any quality test."""
        return not self.valid or any(
            (self.tst_hd, self.tst_rc, self.tst_op, self.tst_cs, self.tst_rd)
        )


def _result_from_tap(tap: Tap, path: str) -> TapResult:
    return TapResult(
        path=path,
        name=tap.name,
        length=tap.length,
        detected_percent=tap.detected_percent,
        purity=tap.purity,
        total_data_files=tap.total_data_files,
        total_gaps=tap.total_gaps,
        fdate=tap.fdate,
        version=tap.version,
        crc=tap.crc,
        cbmcrc=tap.cbmcrc,
        cbmid=tap.cbmid,
        cbmname=tap.cbmname,
        tst_hd=tap.tst_hd,
        tst_rc=tap.tst_rc,
        tst_op=tap.tst_op,
        tst_cs=tap.tst_cs,
        tst_rd=tap.tst_rd,
    )


def sort_results(results: Iterable[TapResult], by_crc: bool = False) -> list[TapResult]:
    """Return the results ordered by first CBM file CRC, or else by path A-Z."""
    if by_crc:
        return sorted(results, key=lambda r: r.cbmcrc)
    return sorted(results, key=lambda r: r.path)


def format_duration(seconds) -> str:
    """Render a duration in whole seconds as ``HH:MM:SS``."""
    total = int(seconds)
    if total < 0:
        raise ValueError(f"duration cannot be negative: {seconds}")
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def _verdict(flag: bool) -> str:
    return "FAIL" if flag else "PASS"


def _loader_name(cbmid: Optional[int]) -> str:
    if cbmid is None:
        return "N/A"
    try:
        return LoaderId(cbmid).name
    except ValueError:
        return str(cbmid)


def _fields(result: TapResult) -> list[str]:
    return [
        result.path,
        f"{result.detected_percent}%",
        _verdict(result.tst_rc),
        _verdict(result.tst_hd),
        _verdict(result.tst_op),
        _verdict(result.tst_cs),
        _verdict(result.tst_rd),
        str(result.total_data_files),
        str(result.total_gaps),
        f"{result.crc & 0xFFFFFFFF:08X}",
        str(result.version),
        str(result.purity),
        str(result.length),
        f"{result.cbmcrc & 0xFFFFFFFF:08X}",
        _loader_name(result.cbmid),
    ]


def format_report(results, rootdir, tolerance, elapsed, failed) -> str:
    """Build the text of a batch report.

    ``tolerance`` is the internal reading tolerance, where 1 means none; the
    report shows it one lower. ``elapsed`` is in seconds.
    """
    results = list(results)
    rows = [_fields(result) for result in results]
    widths = [len(header) for header in _HEADERS]
    for row in rows:
        widths = [max(width, len(cell)) for width, cell in zip(widths, row)]

    parts = [
        "\nTAP Batch Report\n",
        f"\nPath= {rootdir}",
        f"\nRead Tolerance= {tolerance - 1}",
        "\n",
        "\n",
        "".join(f"{h.ljust(w)}  " for h, w in zip(_HEADERS, widths)),
        "\n",
    ]
    for row in rows:
        parts.append("\n")
        parts.append("".join(f"{cell.ljust(w)}  " for cell, w in zip(row, widths)))

    parts.append(f"\n\nOperation completed in {format_duration(elapsed)}.")
    parts.append(f"\n\nTotal TAPs : {len(results)} ")
    parts.append(f"\nFailed : {failed} ")
    parts.append("\n\n")
    parts.extend(f"\n{line}" for line in _KEY)
    parts.append("\n\n")
    parts.append(f"\nGenerated by tapremaster {FTVERSION:0.2f} batch scan.")
    parts.append("\n\n")
    return "".join(parts)


def format_csv(results) -> str:
    """Build the CSV text: one line per result, every field quoted."""
    return "".join(
        "".join(f'"{cell}",  ' for cell in _fields(result)) + "\n"
        for result in results
    )


def _scan_one(scanner: Scanner, root: str, name: str) -> TapResult:
    try:
        tap = scanner(os.path.join(root, name))
    except (OSError, ValueError) as exc:
        log.warning("could not scan %s: %s", name, exc)
        return TapResult(path=name, valid=False)
    if tap is None:
        return TapResult(path=name, valid=False)
    return _result_from_tap(tap, name)


def _write_atomically(target: Path, text: str) -> None:
    temp = target.with_name(target.name + ".tmp")
    temp.write_text(text, encoding="utf-8")
    os.replace(temp, target)


def batchscan(
    rootdir,
    include_subdirs=False,
    scanner: Optional[Scanner] = None,
    outdir=None,
    sort_by_crc=False,
    tolerance=DEFTOL,
) -> int:
    """Find the TAP files under ``rootdir`` and, given a scanner, report on them.

    ``scanner`` takes the path of a TAP file and returns an analysed
    :class:`Tap`, or None if the file is not a valid TAP. Without a scanner
    the files are only counted. The report and CSV are written to ``outdir``
    (the current directory by default). Returns the number of TAP files found.
    Raises FileNotFoundError if ``rootdir`` does not exist.
    """
    root = os.path.abspath(os.fspath(rootdir))
    dirs = get_dir_list(root)
    search = SearchType.ROOT_ALL if include_subdirs else SearchType.ROOT_ONLY
    names = sort_list(clip_list(root, get_file_list("*.tap", dirs, search)))[:MAXTAPS]

    if not names:
        log.error("No taps were found.")
        return 0
    log.info("Found %d TAP files.", len(names))
    if scanner is None:
        return len(names)

    start = time.monotonic()
    results: list[TapResult] = []
    remaining = len(names)
    try:
        for name in names:
            log.info("Testing : %s (%d remaining)", name, remaining)
            remaining -= 1
            results.append(_scan_one(scanner, root, name))
    except KeyboardInterrupt:
        log.warning("Batch scan aborted after %d files.", len(results))

    results = sort_results(results, sort_by_crc)
    elapsed = int(time.monotonic() - start)
    failed = sum(result.failed() for result in results)

    out = Path(outdir) if outdir is not None else Path.cwd()
    report_path = out / REPORT_NAME
    _write_atomically(
        report_path, format_report(results, os.fspath(rootdir), tolerance, elapsed, failed)
    )
    (out / CSV_NAME).write_text(format_csv(results), encoding="utf-8")
    log.info("Saved : %s", report_path)
    return len(names)