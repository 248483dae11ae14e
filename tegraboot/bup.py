"""Reading bootloader update (BUP) payloads.

A payload starts with a fixed header followed by a table of entries. Each
entry names a partition, the location of its image within the payload and
an optional TNSPEC saying which boards the image is for.
"""

from __future__ import annotations

import os
import struct
from dataclasses import dataclass
from typing import BinaryIO, Iterator

from tegraboot.tnspec import TnSpec, generate_compat_spec, specs_match, split_spec

BUP_MAGIC = b"NVIDIA__BLOB__V2"
EXPECTED_MAJOR_VERSION = 2
MAX_MINOR_VERSION = 1
BUFFER_SIZE = 1024 * 1024 * 1024
MAX_PARTS = 64

OP_MODE_COMMON = 0
OP_MODE_PREPRODUCTION = 1
OP_MODE_PRODUCTION = 2

_HEADER = struct.Struct("<16s6I")
_ENTRY = struct.Struct("<40s4I64s")

HEADER_SIZE = _HEADER.size
ENTRY_SIZE = _ENTRY.size


class BupError(ValueError):
    """A payload is unreadable, malformed or unsuitable."""


@dataclass(frozen=True)
class BupEntry:
    """One entry of the payload's table."""

    partition: str
    offset: int
    length: int
    version: int
    op_mode: int
    spec: str


def _version_major(v: int) -> int:
    return (v >> 16) & 0xFF


def _version_minor(v: int) -> int:
    return (v >> 24) & 0x0F


def _bcd(value: int) -> str:
    digits = []
    seen_nonzero = False
    for shift in (12, 8, 4, 0):
        nibble = (value >> shift) & 0xF
        if shift == 0 or nibble != 0 or seen_nonzero:
            seen_nonzero = True
            digits.append("?" if nibble > 9 else str(nibble))
    return "".join(digits)


def format_bup_version(version: int) -> str:
    """Render a payload header version as ``major.minor[-20YY.M-R]``."""
    text = f"{_bcd(_version_major(version))}.{_bcd(_version_minor(version))}"
    year = version & 0xFF
    if year != 0:
        month = (version >> 8) & 0x1F
        in_month = (version >> 14) & 0x03
        text += f"-20{_bcd(year)}.{_bcd(month)}-{in_month}"
    return text


def _rstrip(raw: bytes) -> str:
    """Take characters up to the first NUL, tab or blank."""
    end = len(raw)
    for i, byte in enumerate(raw):
        if byte in (0, 9, 32):
            end = i
            break
    return raw[:end].decode("latin-1")


def _read_exact(f: BinaryIO, size: int) -> bytes:
    chunks = bytearray()
    while len(chunks) < size:
        chunk = f.read(size - len(chunks))
        if not chunk:
            break
        chunks += chunk
    return bytes(chunks)


class BupPayload:
    """An open update payload, matched against a system TNSPEC.

    ``path`` may be None to get a payload with no entries, useful for
    inspecting the system and compatibility specs alone.
    """

    def __init__(self, path: str | os.PathLike[str] | None, tnspec: str) -> None:
        self._tnspec_str = tnspec
        self._tnspec = split_spec(tnspec)
        self._compat = generate_compat_spec(self._tnspec)
        self.entries: list[BupEntry] = []
        self.path = path
        self._file: BinaryIO | None = None
        if path is None:
            return
        self._file = open(path, "rb")
        try:
            self._load()
        except BaseException:
            self.close()
            raise

    def _load(self) -> None:
        assert self._file is not None
        name = os.fspath(self.path)
        payload_size = os.fstat(self._file.fileno()).st_size
        head = _read_exact(self._file, HEADER_SIZE)
        if len(head) < HEADER_SIZE:
            raise BupError(f"{name}: payload too short")
        magic, version, _blob_size, header_size, entry_count, blob_type, _uncomp = _HEADER.unpack(head)
        if magic != BUP_MAGIC:
            raise BupError(f"{name}: bad header magic")
        if _version_major(version) != EXPECTED_MAJOR_VERSION or _version_minor(version) > MAX_MINOR_VERSION:
            raise BupError(f"{name}: unsupported BUP version {format_bup_version(version)}")
        if blob_type != 0:
            raise BupError(f"{name}: bad blob type")
        if header_size < HEADER_SIZE:
            raise BupError(f"{name}: bad header length")
        total = header_size + entry_count * ENTRY_SIZE
        if total > BUFFER_SIZE:
            raise BupError(f"{name}: cannot load all update entries")
        rest = _read_exact(self._file, total - HEADER_SIZE)
        if len(rest) < total - HEADER_SIZE:
            raise BupError(f"{name}: premature EOF")
        table = head + rest
        for index in range(entry_count):
            raw_part, offset, length, ver, op_mode, raw_spec = _ENTRY.unpack_from(
                table, header_size + index * ENTRY_SIZE
            )
            entry = BupEntry(
                partition=_rstrip(raw_part),
                offset=offset,
                length=length,
                version=ver,
                op_mode=op_mode,
                spec=_rstrip(raw_spec),
            )
            if entry.offset > payload_size or entry.offset + entry.length > payload_size:
                raise BupError(f"{name}: entry {index} ({entry.partition}) beyond end of file")
            self.entries.append(entry)

    @property
    def tnspec(self) -> str:
        """The system TNSPEC the payload is matched against."""
        return self._tnspec_str

    @property
    def compat_spec(self) -> str | None:
        """The compatibility spec derived from the TNSPEC, if there is one."""
        return None if self._compat is None else str(self._compat)

    def _matches(self, spec: TnSpec) -> bool:
        if specs_match(spec, self._tnspec):
            return True
        return self._compat is not None and specs_match(spec, self._compat)

    def close(self) -> None:
        """Close the payload file."""
        if self._file is not None:
            self._file.close()
            self._file = None

    def __enter__(self) -> "BupPayload":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def matching_entries(self) -> Iterator[BupEntry]:
        """Yield the entries that apply to this system, in payload order.

        Pre-production entries are skipped; entries without a spec apply
        to every system.
        """
        for entry in self.entries:
            if entry.op_mode == OP_MODE_PREPRODUCTION:
                continue
            if self._matches(split_spec(entry.spec)):
                yield entry

    def find_missing_entries(self) -> list[str]:
        """Return partitions that have spec'd entries but none for this system."""
        all_parts: list[str] = []
        matched: set[str] = set()
        for entry in self.entries:
            if entry.op_mode == OP_MODE_PREPRODUCTION or not entry.spec:
                continue
            if entry.partition in matched:
                continue
            if entry.partition not in all_parts:
                if len(all_parts) >= MAX_PARTS:
                    raise BupError("too many partitions in payload")
                all_parts.append(entry.partition)
            if self._matches(split_spec(entry.spec)):
                matched.add(entry.partition)
        return [part for part in all_parts if part not in matched]

    def read(self, offset: int, length: int) -> bytes:
        """Read up to ``length`` bytes starting at ``offset`` in the payload."""
        if self._file is None:
            raise BupError("payload is not open")
        self._file.seek(offset, os.SEEK_SET)
        return self._file.read(length)