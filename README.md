# tegraboot

A library for the boot-time data structures found on Tegra-based systems.

- **Boot information blocks** (`tegraboot.bootinfo`, `tegraboot.bootblock`):
  a redundant pair of CRC-protected blocks at fixed offsets from the end of
  the boot storage device. They track boot progress, count failed boots and
  hold small named variables.
- **Bootloader update payloads** (`tegraboot.bup`, `tegraboot.tnspec`):
  reading a payload's header and entry table, and choosing the entries that
  apply to the running board by matching TNSPEC strings, including a derived
  compatibility spec.
- **BCT geometry check** (`tegraboot.bct`): deciding whether a candidate T21x
  boot configuration table may replace the current one.
- **Boot ROM error codes** (`tegraboot.errors`): the `NvBootError`
  enumeration.

## Installation

```
pip install .
```

There are no runtime dependencies beyond the standard library. The
`tegraboot.bootinfo` module uses `fcntl`, so it needs a POSIX system.

## Boot information

```python
from tegraboot.bootinfo import OpenFlags, open_bootinfo

with open_bootinfo(OpenFlags.RDWR) as info:
    failed = info.check_boot_status()   # marks a boot as in progress
    info.set("machine_id", "demo")
    print(info.get("machine_id"))
    for name, value in info.variables():
        print(name, value)
    print(info.status())                # BootStatus(version=..., ...)
```

`open_bootinfo` reads the chip ID from
`/sys/module/tegra_fuse/parameters/tegra_chip_id` (`identify_chip`), picks
the first existing device of `/dev/mmcblk0boot1` and `/dev/mtdblock0`
(`find_storage_device`), looks up the block offsets for that chip and device
(`select_layout`, returning a `Layout`) and opens a `BootInfo`. Each of these
steps takes its path, candidate list or lock directory as an argument, and
`BootInfo(device, layout, flags, lock_dir)` can be built directly. Access is
serialised through a lock file in `/run/tegra-bootinfo` by default.

Changes are kept in memory and written on `close()` (or when the `with`
block ends). The copy that was not current is overwritten with the serial
number advanced, so a valid copy survives a failed write. When both copies
are valid, the one with the higher serial number is current, allowing for the
wrap from 255 to 0. Older block versions are read and converted to the
current layout.

Opening flags (`OpenFlags`):

- `RDONLY` – read only; changes raise `BootInfoError` (`EROFS`).
- `RDWR` – read and write.
- `CREAT` – initialise fresh blocks when no valid copy exists; without it,
  opening raises `BootInfoError` (`ENODATA`).
- `FORCE_INIT` – initialise fresh blocks even when a valid copy exists.

Other methods: `mark_boot_success()` clears the boot-in-progress flag and
returns the failed boot count it had; `delete(name)` removes a variable.
`get` and `delete` raise `KeyError` for an unknown name.

Variable names begin with an ASCII letter and contain only letters, digits
and underscores. Values must be printable ASCII. Setting a variable to `None`
or an empty string deletes it. A value that does not fit raises `OSError`
with `ENOSPC`; a bad name or value raises `ValueError`.

The block format is also available as plain functions in
`tegraboot.bootblock` for working with images offline: `BlockHeader`
(`unpack`, `pack`), `decode_block`, `encode_block`, `parse_variables`,
`pack_variables`, `validate_variable` and `choose_current`. Damaged or
unrecognised blocks raise `BlockFormatError`.

## Update payloads

```python
from tegraboot.bup import BupPayload

tnspec = "3668-100-0000-A.0-1-2-jetson-xavier-nx-devkit-mmcblk0p1"
with BupPayload("bl_update_payload", tnspec) as payload:
    print(payload.compat_spec)
    for entry in payload.matching_entries():
        data = payload.read(entry.offset, entry.length)
        print(entry.partition, entry.version, len(data))
    print("missing:", payload.find_missing_entries())
```

`BupPayload` checks the header magic, version, blob type and header length,
and that every entry lies within the file; problems raise `BupError`.
`matching_entries()` yields `BupEntry` records that apply to the system
(entries with no spec apply everywhere; pre-production entries are skipped).
`find_missing_entries()` lists partitions that have spec'd entries but none
matching this system. Passing `None` as the path gives a payload with no
entries, for inspecting `tnspec` and `compat_spec` alone.

`format_bup_version` renders a header version field; for example
`format_bup_version(0x01020821)` returns `"2.1-2021.8-0"`.

`tegraboot.tnspec` provides the pieces directly: `split_spec` (returning a
`TnSpec`), `specs_match`, `generate_compat_spec` and `construct_tnspec`,
which joins a board spec string with the machine name and root filesystem
device read from two configuration files.

## BCT check

`bct_update_valid_t21x(current, candidate)` compares the block and page size
exponents of two T21x BCT images and returns a `BctGeometry` with the sizes in
bytes, or `None` when they differ.

## What this package does not do

- It provides no command-line programs; it is a library only.
- It does not read the board specification from the module's EEPROM; the
  board spec is passed to `construct_tnspec` as a string.
- It does not apply updates: payload entries can be read, but nothing here
  writes them to partitions or updates a BCT on storage.

## Running the tests

```
pip install .[test]
pytest
```