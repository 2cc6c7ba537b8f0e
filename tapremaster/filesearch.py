"""Find files by mask in a directory and, optionally, all of its subdirectories."""

from __future__ import annotations

import fnmatch
import os
from enum import IntEnum
from typing import Iterable, Sequence


class SearchType(IntEnum):
    """How far below the root directory a file search reaches."""

    ROOT_ONLY = 0
    ROOT_ALL = 1


def _with_separator(path: str) -> str:
    return path if path.endswith(os.sep) else path + os.sep


def get_dir_list(rootdir) -> list[str]:
    """Return ``rootdir`` followed by every directory beneath it.

    Directories are listed breadth first: the children of the root, then the
    children of each of those in turn. Entries within one directory are in
    name order. Symbolic links to directories are not followed.
    """
    root = os.fspath(rootdir)
    if not os.path.isdir(root):
        raise FileNotFoundError(f"directory {root} does not exist")

    dirs = [root]
    for current in dirs:
        with os.scandir(current) as entries:
            children = sorted(
                entry.name
                for entry in entries
                if entry.is_dir(follow_symlinks=False)
            )
        dirs.extend(_with_separator(current) + name for name in children)
    return dirs


def _matches(name: str, mask: str) -> bool:
    return fnmatch.fnmatchcase(name.lower(), mask.lower())


def get_file_list(mask: str, dirs: Sequence[str], searchtype=SearchType.ROOT_ALL) -> list[str]:
    """Return full paths of the files matching ``mask`` in ``dirs``.

    ``dirs`` is a list as made by :func:`get_dir_list`; with
    ``SearchType.ROOT_ONLY`` only its first directory is searched. The mask is
    matched without regard to case, as in ``"*.tap"``.
    """
    search = SearchType(searchtype)
    selected: Iterable[str] = dirs[:1] if search is SearchType.ROOT_ONLY else dirs

    files: list[str] = []
    for directory in selected:
        with os.scandir(directory) as entries:
            names = sorted(
                entry.name
                for entry in entries
                if not entry.is_dir() and _matches(entry.name, mask)
            )
        files.extend(_with_separator(directory) + name for name in names)
    return files


def sort_list(names: Iterable[str]) -> list[str]:
    """Return ``names`` sorted A-Z on the full path, ignoring case.

    Names that compare equal keep their original order.
    """
    return sorted(names, key=str.upper)


def clip_list(root: str, names: Iterable[str]) -> list[str]:
    """Make paths relative to ``root``.

    A name left in the root directory itself becomes its bare file name; one
    in a subdirectory gets a leading ``"." + os.sep`` so that it sorts ahead
    of the files in the root.
    """
    prefix = _with_separator(os.fspath(root))
    clipped = []
    for name in names:
        if not name.startswith(prefix):
            raise ValueError(f"{name} is not under {prefix}")
        rest = name[len(prefix):]
        if os.sep in rest:
            rest = "." + os.sep + rest
        clipped.append(rest)
    return clipped


def save_list(root: str, names: Sequence[str], fname) -> int:
    """Write the root and the names to ``fname``, one per line, with a total.

    Returns the number of entries written, the root not counted.
    """
    with open(fname, "w", encoding="utf-8") as out:
        out.write(f"\n{root}")
        for name in names:
            out.write(f"\n{name}")
        out.write(f"\n\nTotal entries {len(names)}")
    return len(names)