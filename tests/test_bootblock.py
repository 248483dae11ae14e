import errno
import struct
import zlib

import pytest

from tegraboot.bootblock import (
    BLOCK_SIZE,
    EXTENSION_SIZE,
    FLAG_BOOT_IN_PROGRESS,
    HEADER_SIZE,
    MAGIC,
    MAX_NAME_SIZE,
    MAX_VALUE_SIZE,
    VARSPACE_SIZE,
    VERSION_CURRENT,
    BlockFormatError,
    BlockHeader,
    choose_current,
    decode_block,
    encode_block,
    pack_variables,
    parse_variables,
    validate_variable,
)


def _raw_header(version, flags=0, failed=0, crc=0, sernum=0, ext=0):
    return struct.pack("<8sHBBIBBH", MAGIC, version, flags, failed, crc, sernum, 0, ext)


def test_layout_sizes():
    assert len(BlockHeader().pack()) == 20
    assert len(pack_variables({})) == BLOCK_SIZE + EXTENSION_SIZE - HEADER_SIZE - 4
    assert MAX_VALUE_SIZE == VARSPACE_SIZE - 4


def test_header_round_trip():
    header = BlockHeader(version=3, flags=1, failed_boots=2, crcsum=0xDEADBEEF, sernum=7, ext_sectors=1)
    packed = header.pack()
    assert packed[:8] == b"BOOTINFO"
    assert len(packed) == HEADER_SIZE
    assert BlockHeader.unpack(packed) == header


def test_header_bad_magic():
    with pytest.raises(BlockFormatError):
        BlockHeader.unpack(b"NOTMAGIC" + bytes(12))


def test_header_too_short():
    with pytest.raises(BlockFormatError):
        BlockHeader.unpack(MAGIC)


def test_parse_variables_basic():
    data = b"name\0value\0other\0x\0\0" + bytes(10)
    assert parse_variables(data) == {"name": "value", "other": "x"}


def test_parse_variables_stops_on_unterminated_pair():
    assert parse_variables(b"abc\0def") == {}
    assert parse_variables(b"abc\0de\0") == {"abc": "de"}


def test_parse_variables_keeps_first_duplicate():
    data = b"a\0one\0a\0two\0\0"
    assert parse_variables(data) == {"a": "one"}


def test_pack_variables_round_trip():
    variables = {"alpha": "1", "beta_2": "hello world"}
    packed = pack_variables(variables)
    assert len(packed) == VARSPACE_SIZE
    assert parse_variables(packed) == variables


def test_pack_variables_empty_is_zeroes():
    assert pack_variables({}, 16) == bytes(16)


def test_pack_variables_needs_terminator_room():
    assert pack_variables({"a": "bcdef"}, 10) == b"a\0bcdef\0\0\0"
    with pytest.raises(BlockFormatError):
        pack_variables({"a": "bcdefg"}, 10)
    with pytest.raises(BlockFormatError):
        pack_variables({"a": "bcdefgh"}, 10)


@pytest.mark.parametrize("name", ["", "1abc", "_x", "a-b", "a b", "é"])
def test_validate_rejects_bad_names(name):
    with pytest.raises(ValueError):
        validate_variable(name, "v", 0)


def test_validate_rejects_long_name():
    with pytest.raises(ValueError):
        validate_variable("a" * MAX_NAME_SIZE, "v", 0)
    assert validate_variable("a" * (MAX_NAME_SIZE - 1), "v", 0) == "v"


def test_validate_rejects_unprintable_value():
    with pytest.raises(ValueError):
        validate_variable("name", "tab\there", 0)


def test_validate_deletion():
    assert validate_variable("name", None, 0) is None
    assert validate_variable("name", "", 0) is None


def test_validate_space_limit():
    assert validate_variable("a", "b", MAX_VALUE_SIZE - 4) == "b"
    with pytest.raises(OSError) as info:
        validate_variable("a", "b", MAX_VALUE_SIZE - 3)
    assert info.value.errno == errno.ENOSPC
    with pytest.raises(OSError):
        validate_variable("a", "x" * MAX_VALUE_SIZE, 0)


def test_encode_decode_round_trip():
    header = BlockHeader(flags=FLAG_BOOT_IN_PROGRESS, failed_boots=3, sernum=42)
    variables = {"slot": "a", "rootfs": "mmcblk0p1"}
    base, ext = encode_block(header, variables)
    assert len(base) == BLOCK_SIZE
    assert len(ext) == EXTENSION_SIZE
    decoded, parsed = decode_block(base, ext)
    assert parsed == variables
    assert decoded.version == VERSION_CURRENT
    assert decoded.flags == FLAG_BOOT_IN_PROGRESS
    assert decoded.failed_boots == 3
    assert decoded.sernum == 42
    assert decoded.boot_in_progress


def test_encode_base_checksum_covers_base_with_zero_field():
    base, _ext = encode_block(BlockHeader(sernum=1), {"k": "v"})
    stored = struct.unpack_from("<I", base, 12)[0]
    zeroed = base[:12] + bytes(4) + base[16:]
    assert zlib.crc32(zeroed) == stored


def test_decode_rejects_corrupt_extension():
    base, ext = encode_block(BlockHeader(), {"k": "v"})
    broken = bytearray(ext)
    broken[0] ^= 0xFF
    with pytest.raises(BlockFormatError):
        decode_block(base, bytes(broken))


def test_decode_requires_extension_for_current_version():
    base, _ext = encode_block(BlockHeader(), {})
    with pytest.raises(BlockFormatError):
        decode_block(base, None)


def test_decode_rejects_extension_size_mismatch():
    base = _raw_header(3, ext=2) + bytes(BLOCK_SIZE - HEADER_SIZE)
    with pytest.raises(BlockFormatError):
        decode_block(base, bytes(EXTENSION_SIZE))


def test_decode_rejects_unknown_version_and_magic():
    with pytest.raises(BlockFormatError):
        decode_block(_raw_header(0) + bytes(BLOCK_SIZE - HEADER_SIZE), None)
    with pytest.raises(BlockFormatError):
        decode_block(bytes(BLOCK_SIZE), None)


def test_decode_version_one_upgrade():
    base = _raw_header(1, flags=5, failed=2, sernum=9) + b"junk\0data\0" + bytes(BLOCK_SIZE - HEADER_SIZE - 10)
    header, variables = decode_block(base, None)
    assert header.version == VERSION_CURRENT
    assert header.flags == FLAG_BOOT_IN_PROGRESS
    assert header.failed_boots == 2
    assert header.sernum == 9
    assert variables == {}


def _version_two_block(payload):
    body = _raw_header(2, flags=0, failed=1, sernum=4) + payload
    body += bytes(BLOCK_SIZE - len(body))
    crc = zlib.crc32(body)
    return body[:12] + struct.pack("<I", crc) + body[16:]


def test_decode_version_two_upgrade():
    base = _version_two_block(b"foo\0bar\0\0")
    header, variables = decode_block(base, None)
    assert variables == {"foo": "bar"}
    assert header.version == VERSION_CURRENT
    assert header.failed_boots == 1
    assert header.sernum == 4


def test_decode_version_two_bad_checksum():
    base = bytearray(_version_two_block(b"foo\0bar\0\0"))
    base[HEADER_SIZE] ^= 0x01
    with pytest.raises(BlockFormatError):
        decode_block(bytes(base), None)


def test_choose_current():
    def h(n):
        return BlockHeader(sernum=n)

    assert choose_current(h(3), h(4)) == 1
    assert choose_current(h(5), h(4)) == 0
    assert choose_current(h(4), h(4)) == 0
    assert choose_current(h(255), h(0)) == 1
    assert choose_current(h(0), h(255)) == 0
    assert choose_current(h(1), None) == 0
    assert choose_current(None, h(1)) == 1
    assert choose_current(None, None) is None


def test_sernum_wraps_in_packing():
    base, ext = encode_block(BlockHeader(sernum=256), {})
    header, _ = decode_block(base, ext)
    assert header.sernum == 0