"""Identify the loader family of a tape from its first CBM program."""

from __future__ import annotations

from typing import Optional

from .definitions import LoaderId

_KNOWN_CRCS: dict[int, LoaderId] = {}


def _register(loader: LoaderId, *crcs: int) -> None:
    for crc in crcs:
        _KNOWN_CRCS[crc] = loader


_register(
    LoaderId.FREE,
    0x261DBA0E, 0x8AAE883E, 0x2EF78649, 0x03969E4B, 0xFCE154D8, 0xF9D0BE97,
    0x5A1D548D, 0xCF2A7534, 0xA19943D0, 0x95094A3A, 0xF6EA5D74, 0x6C280859,
    0xBBDC123F, 0xB3EDBE12, 0x15C61C29, 0xDE2C7D61, 0x4D7D872D, 0x2CC1E59C,
    0x89D45404,
)
_register(
    LoaderId.BLEEP,
    0xAD318CC4, 0x230936D6, 0x39B7A588, 0x2277F4DD, 0x4CF069E0, 0x3B4A219E,
    0xAFD39E15, 0x9B898EF1, 0xAEAD5C1E, 0x8B5FA78A, 0x09A49BB4, 0x58583B59,
    0xF33ED7A2, 0x4825AB54, 0x5DD93BE5, 0xEB752E5F, 0x1EB8DA0A, 0x2BF72881,
    0x59142D65, 0x723AD943, 0xE24E270C, 0xCD8D92EE,
)
_register(LoaderId.CHR, 0x366784C8)
_register(LoaderId.BURN, 0xD09BF46F, 0x8D6E30E7, 0x88613263, 0x291E606A, 0x6EA1C3AD)
_register(
    LoaderId.WILD,
    0xC618D67A, 0x657CC9CD, 0x554FAB46, 0x8D14D322, 0x7EBF1CC9, 0xCDEB4E81,
    0x6B76D7C7, 0xDC5FABC2, 0xC949C625, 0x97AB5438, 0xFC8E7F96, 0x69D7FCC6,
)
_register(
    LoaderId.USG,
    0x00A517B5, 0x518F7B24, 0x3F6DD277, 0xD73E85F7, 0x548CC3DA, 0x834D852F,
    0x6C791C31, 0x1BEBD222, 0x9DCF6B97, 0x81C86C4A, 0x7C1A7B45, 0x917CCAF0,
    0x5FBA5BA7, 0x4C2A7C85, 0x70900492, 0x7BF88049, 0xDE86E455, 0xC6A33E82,
    0xB50AB01A, 0x223890AF, 0xEA89FD1F, 0xB3AE738A, 0xE5869C31, 0xCBCCDB4E,
    0xD0528E47, 0x25035DF8, 0x4FA62BEC, 0x266B6BD6, 0x17060B09,
)
_register(
    LoaderId.MIC,
    0x0645F350, 0x78C43CB9, 0xE0035766, 0x0EA016C6, 0x92571C3D, 0x96677D19,
    0x9F20C2DB, 0xBC7F0E8D, 0xB1F027B4, 0x178977C3, 0x29DCB0D1,
)
_register(LoaderId.ACE, 0x58EEE22A, 0x915280DA, 0x6A333F1D, 0x292409A7, 0xF4CF55C8)
_register(
    LoaderId.T250,
    0x60BCE3A3, 0x2D7372C2, 0xE3033FA9, 0x50C1FAFE, 0x1FDF834A, 0x8E399D97,
    0x7D11900C, 0xC5C8015F, 0xB3A98C46,
)
_register(LoaderId.RACK, 0x67D4643C, 0xAB3A1BAC, 0x95518E9E, 0x8E4CCA04)
_register(
    LoaderId.OCEAN,
    0x96285AA9, 0x7E818F78, 0x20CDF565, 0xD2908C53, 0xD3958D73, 0x06EC1039,
    0xD70F4CBA, 0xA9F2CE53, 0x1C237E84, 0xC1C4A2A0, 0x985B5C4D, 0xBD0ECB9E,
)
_register(LoaderId.RAST, 0x04F2443B, 0x880CA8A2)
_register(LoaderId.SPAV, 0xBDF9B4EF, 0x66CEE4E9, 0x603E8D53, 0x0412A711, 0x7CA20791)
_register(LoaderId.HIT, 0x5DC3AA69, 0x3D9AD474)
_register(LoaderId.ANI, 0x1482D2A7, 0x0363E489, 0x24BE37F6, 0xA09E55E9)
_register(LoaderId.VIS1, 0xDD3DE175, 0x6B2A1236)
_register(LoaderId.VIS2, 0x9EF77DD5)
_register(LoaderId.VIS3, 0x867C8969)
_register(LoaderId.VIS4, 0xC7641A7E)
_register(LoaderId.FIRE, 0xA7D33777, 0x041FDA59)
_register(LoaderId.NOVA, 0x001B30E8, 0xA5950CFF)
_register(LoaderId.IK, 0x25197B4E)
_register(LoaderId.PAV, 0x5C34F43D)
# Includes Hi-Tec style loaders with other thresholds (Future Bike, Guardian II...).
_register(LoaderId.VIRG, 0x0936B7DF, 0x075AE096, 0x342A2416, 0x895DCF44)
_register(LoaderId.HTEC, 0xFADDF41C)
_register(LoaderId.FLASH, 0x8E027BD2)
_register(LoaderId.OCNEW1T1, 0x1754E006, 0x3A35F804)
_register(LoaderId.OCNEW1T2, 0xC039C251)
_register(LoaderId.OCNEW2, 0x7FFB98B2, 0x9B132BD0)
_register(LoaderId.ATLAN, 0x5622E174)
_register(LoaderId.AUDIOGENIC, 0x206A8B68)

# Identifying strings, highest priority first.
_ID_STRINGS: tuple[tuple[bytes, LoaderId], ...] = (
    (b"SNAKE", LoaderId.SNAKE),
    (b"GO AWAY", LoaderId.OCEAN),
    (bytes([0x03, 0x19, 0x02, 0x05, 0x12]), LoaderId.CYBER),  # "CYBER" in screen codes
    (b"NOVA", LoaderId.NOVA),
    (bytes([0x0E, 0x0F, 0x16, 0x01]), LoaderId.NOVA),  # "NOVA" in screen codes
)


def idloader(crc: int, cbm_data: Optional[bytes] = None) -> Optional[LoaderId]:
    """Return the loader family for the first CBM program, or None if unknown.

    ``crc`` is the CRC32 of that program; when it is not known, ``cbm_data``
    (the decoded first CBM data file, if any) is searched for identifying strings.
    """
    loader = _KNOWN_CRCS.get(crc)
    if loader is not None:
        return loader
    if not cbm_data:
        return None
    data = bytes(cbm_data)
    for marker, candidate in _ID_STRINGS:
        if marker in data:
            return candidate
    return None