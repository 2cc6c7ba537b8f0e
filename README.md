# tapremaster

A library for working with Commodore 64 TAP tape images: reading the TAP
header, converting between TAP v0 and v1, clipping and rebuilding pauses,
cutting ranges, cleaning pulse widths, repairing broken pilot tones and
gaps, identifying loader families by CRC32, and writing batch reports over
directories of TAP files.

It has no dependencies beyond the Python standard library (3.10 or later).

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Modules

### `tapremaster.definitions`

- `Tap` – a TAP image (`data`, a `bytearray` including the 20 byte header)
  plus the information gathered about it (`version`, `blocks`, test
  results, CRCs and so on).
  - `Tap.from_bytes(data)` builds one from a raw image; it raises
    `ValueError` for fewer than 20 bytes and sets `fsigcheck`, `fvercheck`
    and `fsizcheck` from the header.
  - `Tap.length`, `Tap.header_size()`, `Tap.fix_header_size()` and
    `Tap.set_version(version)` (0 or 1, otherwise `ValueError`).
- `Block` – one entity found in an image (type `lt`, offsets `p1`..`p4`,
  extra info `xi`, decoded data and so on).
- `Format` – a tape format's name and ideal pulse widths (`sp`, `mp`, `lp`)
  and threshold `tp`.
- `LoaderType` and `LoaderId` – enumerations of block types and loader
  families.

### `tapremaster.crc32`

`compute_crc32(data)` returns the CRC32 with the register started at
`0xFFFFFFFF` and no final inversion; empty input gives 0.

### `tapremaster.loader_id`

`idloader(crc, cbm_data=None)` returns the `LoaderId` for a known CRC32 of
the first CBM program. For an unknown CRC it searches `cbm_data` for
identifying strings ("SNAKE", "GO AWAY", "CYBER" and "NOVA" in ASCII or
screen codes) and returns `None` if nothing matches.

### `tapremaster.filesearch`

- `get_dir_list(rootdir)` – the root followed by every directory below it,
  breadth first; `FileNotFoundError` if the root does not exist.
- `get_file_list(mask, dirs, searchtype)` – files matching `mask`
  (case-insensitive) in the listed directories, or only the first with
  `SearchType.ROOT_ONLY`.
- `sort_list(names)` – case-insensitive A-Z sort.
- `clip_list(root, names)` – paths made relative to `root`, with entries in
  subdirectories prefixed by `"." + os.sep`.
- `save_list(root, names, fname)` – writes the list and a total to a file.

### `tapremaster.pauses`

All of these edit a `Tap` in place and keep the header size correct.

- `clip_ends(tap)` – remove leading and trailing pauses from a v0 image.
- `unify_pauses(tap)` – merge consecutive pauses (v0 or v1).
- `convert_to_v1(tap)` / `convert_to_v0(tap)` – return `False` if the image
  already has that version.
- `cut_range(tap, start, end)` – remove bytes `start`..`end` inclusive.
- `add_trailpause(tap)` – append a 5 second pause to a v1 image.

Invalid requests (wrong version, range outside the data area) raise
`ValueError`.

### `tapremaster.repair`

Repairs that work from `tap.blocks`: `clean_files`, `fix_boot_pilot`,
`standardize_pauses`, `fix_pilots`, `fix_prepausegaps`, `fix_postpausegaps`,
`insert_pauses`, `cut_postdata_gaps`, `fill_cbm_tone` and
`fix_bleep_pilots`. Most return the number of changes made. Each accepts an
`analyze` callable that rescans the image and refreshes `tap.blocks`; when
none is given and the layout changed, `tap.blocks` is emptied.
`clean_files`, `fix_boot_pilot`, `fill_cbm_tone` and `fix_bleep_pilots`
also need a mapping from block type to `Format`, and `fix_bleep_pilots` a
`read_byte(tap, pos, lp, sp, tp, endian)` callable.

### `tapremaster.batchscan`

`batchscan(rootdir, include_subdirs=False, scanner=None, outdir=None,
sort_by_crc=False, tolerance=DEFTOL)` finds `*.tap` files (at most 8000)
and returns how many there are. With a `scanner` – a callable taking a path
and returning an analysed `Tap`, or `None` for an invalid file – it scans
each one and writes `batch_report.txt` and `batch.csv` to `outdir` (the
current directory by default). `format_report`, `format_csv`,
`sort_results`, `format_duration` and `TapResult` are available for
building reports yourself.

## Examples

```python
from tapremaster.definitions import Tap
from tapremaster.pauses import add_trailpause, convert_to_v1

with open("game.tap", "rb") as fh:
    tap = Tap.from_bytes(fh.read())

convert_to_v1(tap)
add_trailpause(tap)

with open("game_v1.tap", "wb") as fh:
    fh.write(bytes(tap.data))
```

```python
from tapremaster.crc32 import compute_crc32
from tapremaster.loader_id import idloader

crc = compute_crc32(program_bytes)
loader = idloader(crc, program_bytes)
```

## What this package does not do

- It does not analyse images itself: there are no loader scanners, so
  nothing here fills in `tap.blocks` or the detection statistics. The
  repair functions and `batchscan` rely on an `analyze` or `scanner`
  callable that you provide.
- It ships no table of tape formats; you supply the `Format` entries.
- It has no command-line program and does not produce audio output.