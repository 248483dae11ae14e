"""On-storage layout of the boot information block.

A block is a 512-byte base sector followed by an extension area. The base
sector starts with a fixed header; the remainder of the base sector plus the
extension (minus its trailing CRC) holds NUL-terminated name/value pairs.
"""

from __future__ import annotations

import errno
import struct
import zlib
from dataclasses import dataclass

MAGIC = b"BOOTINFO"

VERSION_OLDER = 1
VERSION_OLD = 2
VERSION_CURRENT = 3

EXTENSION_SECTOR_COUNT = 1
MAX_EXTENSION_SECTORS = 511

BLOCK_SIZE = 512
EXTENSION_SIZE = EXTENSION_SECTOR_COUNT * 512

FLAG_BOOT_IN_PROGRESS = 1 << 0

_HEADER = struct.Struct("<8sHBBIBBH")
_CRC = struct.Struct("<I")
_CRC_OFFSET = 12

HEADER_SIZE = _HEADER.size
VARSPACE_SIZE = BLOCK_SIZE + EXTENSION_SIZE - (HEADER_SIZE + _CRC.size)
MAX_NAME_SIZE = BLOCK_SIZE
MAX_VALUE_SIZE = VARSPACE_SIZE - 4

_ENCODING = "latin-1"


class BlockFormatError(ValueError):
    """A stored block is missing, damaged or of an unknown layout."""


@dataclass
class BlockHeader:
    """Header at the start of a boot information block."""

    version: int = VERSION_CURRENT
    flags: int = 0
    failed_boots: int = 0
    crcsum: int = 0
    sernum: int = 0
    ext_sectors: int = EXTENSION_SECTOR_COUNT

    @classmethod
    def unpack(cls, data: bytes) -> "BlockHeader":
        """Decode a header from the start of ``data``."""
        if len(data) < HEADER_SIZE:
            raise BlockFormatError("block too short for header")
        magic, version, flags, failed, crc, sernum, _unused, ext = _HEADER.unpack_from(data)
        if magic != MAGIC:
            raise BlockFormatError("bad block magic")
        return cls(version, flags, failed, crc, sernum, ext)

    def pack(self) -> bytes:
        """Encode the header in its on-storage form."""
        return _HEADER.pack(
            MAGIC,
            self.version & 0xFFFF,
            self.flags & 0xFF,
            self.failed_boots & 0xFF,
            self.crcsum & 0xFFFFFFFF,
            self.sernum & 0xFF,
            0,
            self.ext_sectors & 0xFFFF,
        )

    @property
    def boot_in_progress(self) -> bool:
        return bool(self.flags & FLAG_BOOT_IN_PROGRESS)


def parse_variables(data: bytes) -> dict[str, str]:
    """Parse the variable area into an ordered name-to-value mapping.

    Parsing stops at an empty name or at a pair that is not fully
    terminated within the area. If a name repeats, the first value wins.
    """
    variables: dict[str, str] = {}
    pos = 0
    end = len(data)
    while pos < end and data[pos] != 0:
        name_end = data.find(b"\0", pos, end)
        if name_end < 0:
            break
        value_end = data.find(b"\0", name_end + 1, end)
        if value_end < 0:
            break
        name = data[pos:name_end].decode(_ENCODING)
        value = data[name_end + 1:value_end].decode(_ENCODING)
        variables.setdefault(name, value)
        pos = value_end + 1
    return variables


def pack_variables(variables: dict[str, str], size: int = VARSPACE_SIZE) -> bytes:
    """Pack variables into an area of ``size`` bytes, NUL-padded.

    One byte is always kept for the list terminator; a list that would
    leave no room for it raises BlockFormatError.
    """
    out = bytearray(size)
    if not variables:
        return bytes(out)
    remain = size - 1
    pos = 0
    for name, value in variables.items():
        if remain <= 0:
            raise BlockFormatError("variables list too large")
        item = name.encode(_ENCODING) + b"\0" + value.encode(_ENCODING) + b"\0"
        if len(item) > remain:
            raise BlockFormatError("variables list too large")
        out[pos:pos + len(item)] = item
        pos += len(item)
        remain -= len(item)
    if remain == 0:
        raise BlockFormatError("variables list too large")
    return bytes(out)


def _is_print(ch: str) -> bool:
    return " " <= ch <= "~"


def validate_variable(name: str, value: str | None, used: int) -> str | None:
    """Check a variable assignment against the naming and space rules.

    ``used`` is the number of bytes the existing variables occupy. Returns
    the value to store, or None when the assignment is a deletion (no value
    or an empty one). Raises ValueError for a bad name or value and
    OSError(ENOSPC) when the value does not fit.
    """
    if not name or not (name[0].isascii() and name[0].isalpha()):
        raise ValueError(f"invalid variable name: {name!r}")
    if any(not (ch == "_" or (ch.isascii() and ch.isalnum())) for ch in name[1:]):
        raise ValueError(f"invalid variable name: {name!r}")
    if len(name) >= MAX_NAME_SIZE:
        raise ValueError("variable name too long")
    if not value:
        return None
    if not all(_is_print(ch) for ch in value):
        raise ValueError("variable value contains non-printable characters")
    if len(value) >= MAX_VALUE_SIZE or used + len(name) + len(value) + 2 > MAX_VALUE_SIZE:
        raise OSError(errno.ENOSPC, "no space for variable")
    return value


def decode_block(base: bytes, extension: bytes | None) -> tuple[BlockHeader, dict[str, str]]:
    """Validate a stored block and convert it to the current layout.

    ``extension`` is only consulted for current-version blocks. Returns the
    header (upgraded to the current version) and the variables.
    """
    if len(base) < BLOCK_SIZE:
        raise BlockFormatError("base block too short")
    header = BlockHeader.unpack(base)

    if header.version == VERSION_OLDER:
        header.flags = FLAG_BOOT_IN_PROGRESS if header.flags != 0 else 0
        header.ext_sectors = EXTENSION_SECTOR_COUNT
        header.version = VERSION_CURRENT
        return header, {}

    if header.version == VERSION_OLD:
        block = bytearray(base[:BLOCK_SIZE])
        block[_CRC_OFFSET:_CRC_OFFSET + _CRC.size] = bytes(_CRC.size)
        if zlib.crc32(block) != header.crcsum:
            raise BlockFormatError("base block checksum mismatch")
        header.crcsum = 0
        header.ext_sectors = EXTENSION_SECTOR_COUNT
        header.version = VERSION_CURRENT
        buffer = bytes(block) + bytes(EXTENSION_SIZE)
        return header, parse_variables(buffer[HEADER_SIZE:BLOCK_SIZE + EXTENSION_SIZE - _CRC.size])

    if header.version >= VERSION_CURRENT:
        if header.ext_sectors != EXTENSION_SECTOR_COUNT:
            raise BlockFormatError("extension size mismatch")
        if extension is None or len(extension) < EXTENSION_SIZE:
            raise BlockFormatError("extension block missing or too short")
        ext = extension[:EXTENSION_SIZE]
        (stored,) = _CRC.unpack_from(ext, EXTENSION_SIZE - _CRC.size)
        if zlib.crc32(ext[:EXTENSION_SIZE - _CRC.size]) != stored:
            raise BlockFormatError("extension checksum mismatch")
        buffer = bytes(base[:BLOCK_SIZE]) + bytes(ext)
        return header, parse_variables(buffer[HEADER_SIZE:BLOCK_SIZE + EXTENSION_SIZE - _CRC.size])

    raise BlockFormatError(f"unrecognized block version {header.version}")


def encode_block(header: BlockHeader, variables: dict[str, str] | None) -> tuple[bytes, bytes]:
    """Build the base and extension sectors for a block.

    The header's flags, failed boot count and serial number are written as
    given; version and extension size are set to the current values and
    both checksums are computed. Returns ``(base, extension)``.
    """
    out = BlockHeader(
        version=VERSION_CURRENT,
        flags=header.flags,
        failed_boots=header.failed_boots,
        crcsum=0,
        sernum=header.sernum,
        ext_sectors=EXTENSION_SECTOR_COUNT,
    )
    buffer = bytearray(BLOCK_SIZE + EXTENSION_SIZE)
    buffer[:HEADER_SIZE] = out.pack()
    buffer[HEADER_SIZE:BLOCK_SIZE + EXTENSION_SIZE - _CRC.size] = pack_variables(variables or {})
    base_crc = zlib.crc32(buffer[:BLOCK_SIZE])
    _CRC.pack_into(buffer, _CRC_OFFSET, base_crc)
    ext_crc = zlib.crc32(buffer[BLOCK_SIZE:BLOCK_SIZE + EXTENSION_SIZE - _CRC.size])
    _CRC.pack_into(buffer, BLOCK_SIZE + EXTENSION_SIZE - _CRC.size, ext_crc)
    return bytes(buffer[:BLOCK_SIZE]), bytes(buffer[BLOCK_SIZE:])


def choose_current(first: BlockHeader | None, second: BlockHeader | None) -> int | None:
    """Pick the index of the current copy from two (possibly invalid) copies.

    When both are valid the higher serial number wins, allowing for the
    wrap from 255 to 0. Returns None when neither copy is valid.
    """
    if first is not None and second is not None:
        if first.sernum == 255 and second.sernum == 0:
            return 1
        if second.sernum == 255 and first.sernum == 0:
            return 0
        return 1 if second.sernum > first.sernum else 0
    if first is not None:
        return 0
    if second is not None:
        return 1
    return None