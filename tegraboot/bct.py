"""Boot configuration table checks for T21x chips."""

from __future__ import annotations

import struct
from dataclasses import dataclass

BOOT_BLOCK_SIZE_LOG_2 = 333
BOOT_PAGE_SIZE_LOG_2 = 334

_WORD = struct.Struct("<I")


@dataclass(frozen=True)
class BctGeometry:
    """Block and page sizes of the boot device, in bytes."""

    block_size: int
    page_size: int


def _word(bct: bytes, index: int) -> int:
    offset = index * _WORD.size
    if len(bct) < offset + _WORD.size:
        raise ValueError("BCT too short")
    return _WORD.unpack_from(bct, offset)[0]


def bct_update_valid_t21x(current: bytes, candidate: bytes) -> BctGeometry | None:
    """Check that a candidate BCT may replace the current one.

    The block and page size exponents must agree. Returns the geometry they
    describe, or None when they differ.
    """
    cur_block = _word(current, BOOT_BLOCK_SIZE_LOG_2)
    cur_page = _word(current, BOOT_PAGE_SIZE_LOG_2)
    if (
        cur_block != _word(candidate, BOOT_BLOCK_SIZE_LOG_2)
        or cur_page != _word(candidate, BOOT_PAGE_SIZE_LOG_2)
    ):
        return None
    return BctGeometry(block_size=1 << cur_block, page_size=1 << cur_page)