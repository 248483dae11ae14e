"""Access to the boot information block kept on the boot storage device.

Two copies of the block are kept at fixed offsets from the end of the
device. Each update is written to the copy that is not current, with the
serial number advanced, so a failed write leaves the other copy intact.
"""

from __future__ import annotations

import errno
import fcntl
import logging
import os
import re
from dataclasses import dataclass
from enum import IntFlag
from typing import Iterator, Sequence

from tegraboot.bootblock import (
    BLOCK_SIZE,
    EXTENSION_SECTOR_COUNT,
    EXTENSION_SIZE,
    BlockFormatError,
    BlockHeader,
    choose_current,
    decode_block,
    encode_block,
    validate_variable,
)

log = logging.getLogger(__name__)

CHIPID_PATH = "/sys/module/tegra_fuse/parameters/tegra_chip_id"
LOCK_DIR = "/run/tegra-bootinfo"
LOCK_FILE = "lockfile"

# Order matters: systems with both eMMC and SPI flash prefer the eMMC.
STORAGE_DEVICES = ("/dev/mmcblk0boot1", "/dev/mtdblock0")


class BootInfoError(OSError):
    """An operation on the boot information block failed."""

    def __init__(self, code: int, message: str | None = None) -> None:
        super().__init__(code, message or os.strerror(code))


class OpenFlags(IntFlag):
    """Access mode and creation flags for opening the block."""

    RDONLY = 0
    RDWR = 3
    CREAT = 1 << 2
    FORCE_INIT = 1 << 3


_ACCMODE = 0x03


@dataclass(frozen=True)
class Layout:
    """Offsets (from the end of the device) of the block copies.

    Only the first two copies are ever written; further entries are older
    locations that are read to allow upgrading.
    """

    chipid: int
    device: str | None
    devinfo_offsets: tuple[int, ...]
    extension_offsets: tuple[int, ...]

    @property
    def count(self) -> int:
        return len(self.devinfo_offsets)


_N = EXTENSION_SECTOR_COUNT

LAYOUTS: tuple[Layout, ...] = (
    # No GPT block in SPI-flash Nanos, so eMMC and SPI flash share a layout.
    Layout(
        0x21,
        None,
        (-512, -(65536 + 512)),
        (-((_N + 2) * 512), -(65536 + (_N + 2) * 512)),
    ),
    Layout(
        0x18,
        None,
        (-((36 + 1) * 512), -((36 + 2) * 512)),
        (-((_N + 36 + 2) * 512), -((_N * 2 + 36 + 2) * 512)),
    ),
    Layout(
        0x19,
        "/dev/mmcblk0boot1",
        (-((36 + 1) * 512), -((36 + 2) * 512)),
        (-((_N + 36 + 2) * 512), -((_N * 2 + 36 + 2) * 512)),
    ),
    # Kept out of the pseudo-GPT's erase block; the last two pairs are the
    # original locations, read only so that old data can be carried over.
    Layout(
        0x19,
        "/dev/mtdblock0",
        (
            -((128 + 1) * 512),
            -((256 + 1) * 512),
            -((36 + 1) * 512),
            -((36 + 2) * 512),
        ),
        (
            -((_N + 128 + 1) * 512),
            -((_N + 256 + 1) * 512),
            -((_N + 36 + 2) * 512),
            -((_N * 2 + 36 + 2) * 512),
        ),
    ),
)


@dataclass(frozen=True)
class BootStatus:
    """Summary of the current block's header."""

    version: int
    boot_in_progress: bool
    failed_boots: int
    ext_sectors: int


_STRTOUL = re.compile(r"\s*([+-]?)(0[xX][0-9a-fA-F]+|0[0-7]*|[1-9][0-9]*)")


def _parse_ulong(text: str) -> int:
    match = _STRTOUL.match(text)
    if match is None:
        return 0
    sign, digits = match.groups()
    if digits[:2].lower() == "0x":
        value = int(digits[2:], 16)
    elif digits.startswith("0"):
        value = int(digits, 8)
    else:
        value = int(digits)
    if sign == "-":
        value = (-value) % (1 << 64)
    return value


def identify_chip(path: str = CHIPID_PATH) -> int:
    """Return the Tegra chip ID read from ``path``, or 0 if unavailable."""
    try:
        with open(path, "rb") as f:
            data = f.read(32)
    except OSError:
        return 0
    if not data:
        return 0
    return _parse_ulong(data.decode("latin-1"))


def find_storage_device(candidates: Sequence[str] = STORAGE_DEVICES) -> str:
    """Return the first candidate device that exists."""
    for candidate in candidates:
        if os.access(candidate, os.F_OK):
            return candidate
    raise BootInfoError(errno.ENODEV, "no boot information storage device")


def select_layout(chipid: int, device: str) -> Layout:
    """Return the block layout for a chip and storage device."""
    for layout in LAYOUTS:
        if layout.chipid == chipid and (layout.device is None or layout.device == device):
            return layout
    raise BootInfoError(errno.ENODEV, f"unsupported chip 0x{chipid:x} on {device}")


def _read_at(fd: int, offset: int, size: int) -> bytes | None:
    try:
        os.lseek(fd, offset, os.SEEK_END)
        chunks = bytearray()
        while len(chunks) < size:
            chunk = os.read(fd, size - len(chunks))
            if not chunk:
                break
            chunks += chunk
    except OSError:
        return None
    return bytes(chunks) if len(chunks) == size else None


def _write_at(fd: int, offset: int, data: bytes) -> None:
    os.lseek(fd, offset, os.SEEK_END)
    view = memoryview(data)
    while view:
        written = os.write(fd, view)
        view = view[written:]


class BootInfo:
    """An open boot information block.

    Changes are kept in memory and written out on close. Use as a context
    manager to make sure the block is written and the lock released.
    """

    def __init__(
        self,
        device: str,
        layout: Layout,
        flags: int = OpenFlags.RDONLY,
        lock_dir: str = LOCK_DIR,
    ) -> None:
        self.device = device
        self.layout = layout
        self._readonly = (int(flags) & _ACCMODE) == OpenFlags.RDONLY
        self._dirty = False
        self._current = -1
        self._header = BlockHeader(sernum=0)
        self._vars: dict[str, str] = {}
        self._fd: int | None = None
        self._lockfd: int | None = None
        try:
            self._open(int(flags), lock_dir)
        except BaseException:
            self._release()
            raise

    def _open(self, flags: int, lock_dir: str) -> None:
        mode = os.O_RDONLY if self._readonly else os.O_RDWR | getattr(os, "O_DSYNC", 0)
        self._fd = os.open(self.device, mode)
        try:
            os.mkdir(lock_dir, 0o2770)
        except FileExistsError:
            pass
        self._lockfd = os.open(os.path.join(lock_dir, LOCK_FILE), os.O_CREAT | os.O_RDWR, 0o770)
        fcntl.flock(self._lockfd, fcntl.LOCK_SH if self._readonly else fcntl.LOCK_EX)

        copies = [self._read_copy(i) for i in range(self.layout.count)]
        first_valid = next((i for i, copy in enumerate(copies) if copy is not None), None)

        if first_valid is None:
            if not flags & OpenFlags.CREAT:
                raise BootInfoError(errno.ENODATA, "no valid boot information block")
            self._initialize()
        elif flags & OpenFlags.FORCE_INIT:
            self._initialize()
        else:
            if first_valid < 2:
                current = choose_current(
                    copies[0][0] if copies[0] else None,
                    copies[1][0] if len(copies) > 1 and copies[1] else None,
                )
            else:
                current = first_valid
            header, variables = copies[current]
            self._current = current
            self._header = header
            self._vars = dict(variables)

    def _read_copy(self, index: int) -> tuple[BlockHeader, dict[str, str]] | None:
        base = _read_at(self._fd, self.layout.devinfo_offsets[index], BLOCK_SIZE)
        if base is None:
            return None
        extension = _read_at(self._fd, self.layout.extension_offsets[index], EXTENSION_SIZE)
        try:
            return decode_block(base, extension)
        except BlockFormatError as exc:
            log.debug("copy %d of boot information invalid: %s", index, exc)
            return None

    def _initialize(self) -> None:
        zero_base = bytes(BLOCK_SIZE)
        zero_ext = bytes(EXTENSION_SIZE)
        if self._readonly:
            raise BootInfoError(errno.EROFS, "boot information opened read-only")
        for index in range(2):
            _write_at(self._fd, self.layout.devinfo_offsets[index], zero_base)
            _write_at(self._fd, self.layout.extension_offsets[index], zero_ext)
        self._current = -1
        self._header = self._flush()
        self._current = 0
        self._vars = {}

    def _flush(self) -> BlockHeader:
        if self._readonly:
            raise BootInfoError(errno.EROFS, "boot information opened read-only")
        index = 1 - self._current if self._current in (0, 1) else 0
        header = BlockHeader(
            flags=self._header.flags,
            failed_boots=self._header.failed_boots,
            sernum=(self._header.sernum + 1) & 0xFF,
        )
        base, extension = encode_block(header, self._vars if self._current >= 0 else None)
        _write_at(self._fd, self.layout.devinfo_offsets[index], base)
        _write_at(self._fd, self.layout.extension_offsets[index], extension)
        self._dirty = False
        return header

    def _release(self) -> None:
        for fd in (self._lockfd, self._fd):
            if fd is not None:
                os.close(fd)
        self._lockfd = None
        self._fd = None

    def close(self) -> None:
        """Write out pending changes and release the device and lock."""
        if self._fd is None:
            return
        try:
            if self._dirty:
                self._flush()
        finally:
            self._release()
            self._vars = {}

    def __enter__(self) -> "BootInfo":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _require_writable(self) -> None:
        if self._readonly:
            raise BootInfoError(errno.EROFS, "boot information opened read-only")

    def mark_boot_success(self) -> int:
        """Clear the boot-in-progress flag; return the failed boot count it had."""
        self._require_writable()
        failed = self._header.failed_boots
        self._header.flags &= ~1
        self._header.failed_boots = 0
        self._dirty = True
        return failed

    def check_boot_status(self) -> int:
        """Record the start of a boot and return the failed boot count.

        If a boot was already in progress, it is counted as failed.
        """
        self._require_writable()
        if self._header.boot_in_progress:
            self._header.failed_boots = (self._header.failed_boots + 1) & 0xFF
        else:
            self._header.flags |= 1
            self._header.failed_boots = 0
        self._dirty = True
        return self._header.failed_boots

    def status(self) -> BootStatus:
        """Return the header information of the current block."""
        return BootStatus(
            version=self._header.version,
            boot_in_progress=self._header.boot_in_progress,
            failed_boots=self._header.failed_boots,
            ext_sectors=self._header.ext_sectors,
        )

    def variables(self) -> Iterator[tuple[str, str]]:
        """Yield ``(name, value)`` pairs in stored order."""
        yield from list(self._vars.items())

    def get(self, name: str) -> str:
        """Return the value of a variable; KeyError if it is not set."""
        return self._vars[name]

    def set(self, name: str, value: str | None) -> None:
        """Set a variable, or delete it when the value is None or empty."""
        self._require_writable()
        used = sum(len(n) + len(v) + 2 for n, v in self._vars.items())
        checked = validate_variable(name, value, used)
        if checked is None:
            if name not in self._vars:
                raise KeyError(name)
            del self._vars[name]
        else:
            self._vars[name] = checked
        self._dirty = True

    def delete(self, name: str) -> None:
        """Delete a variable; KeyError if it is not set."""
        self.set(name, None)


def open_bootinfo(
    flags: int = OpenFlags.RDONLY,
    chipid_path: str = CHIPID_PATH,
    candidates: Sequence[str] = STORAGE_DEVICES,
    lock_dir: str = LOCK_DIR,
) -> BootInfo:
    """Locate the storage device for this system and open its block."""
    chipid = identify_chip(chipid_path)
    device = find_storage_device(candidates)
    layout = select_layout(chipid, device)
    return BootInfo(device, layout, flags, lock_dir)