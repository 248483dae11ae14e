import struct

import pytest

from tegraboot.bct import BctGeometry, bct_update_valid_t21x


def make_bct(block_log2, page_log2, filler=0):
    words = [filler] * 340
    words[333] = block_log2
    words[334] = page_log2
    return struct.pack("<340I", *words)


def test_matching_geometry():
    result = bct_update_valid_t21x(make_bct(9, 14), make_bct(9, 14))
    assert result == BctGeometry(block_size=512, page_size=16384)


def test_other_words_may_differ():
    current = make_bct(12, 9, filler=1)
    candidate = make_bct(12, 9, filler=7)
    assert bct_update_valid_t21x(current, candidate) == bct_update_valid_t21x(current, current)


def test_block_size_mismatch():
    assert bct_update_valid_t21x(make_bct(9, 14), make_bct(10, 14)) is None


def test_page_size_mismatch():
    assert bct_update_valid_t21x(make_bct(9, 14), make_bct(9, 12)) is None


def test_short_bct_raises():
    with pytest.raises(ValueError):
        bct_update_valid_t21x(b"\0" * 100, make_bct(9, 14))