"""Parsing, matching and deriving TNSPEC board specification strings.

A TNSPEC has the form::

    BOARDID-FAB-BOARDSKU-BOARDREV-FUSELEVEL-CHIPREV-MACHINE-BOOTDEV

The MACHINE field may itself contain hyphens. BOOTDEV never does, so the
last hyphen in the string separates MACHINE from BOOTDEV.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import IntEnum
from os import PathLike


class Field(IntEnum):
    """Positions of the fields in a TNSPEC."""

    BOARDID = 0
    FAB = 1
    BOARDSKU = 2
    BOARDREV = 3
    FUSELEVEL = 4
    CHIPREV = 5
    MACHINE = 6
    BOOTDEV = 7


MAX_SPEC_FIELDS = 8
_SPEC_BUFFER_SIZE = 128
_CONF_READ_SIZE = 127
_TRAILING_NONGRAPH = re.compile(r"[^\x21-\x7e]+\Z")


@dataclass(frozen=True)
class TnSpec:
    """A TNSPEC split into its fields. An empty field is a wildcard."""

    fields: tuple[str, ...] = ()

    @property
    def field_count(self) -> int:
        return len(self.fields)

    def __str__(self) -> str:
        return "-".join(self.fields)


def split_spec(spec: str) -> TnSpec:
    """Split a TNSPEC string into at most eight fields."""
    if not spec:
        return TnSpec()
    fields: list[str] = []
    rest = spec
    for index in range(MAX_SPEC_FIELDS):
        hyphen = rest.find("-")
        if hyphen < 0:
            fields.append(rest)
            return TnSpec(tuple(fields))
        if index == Field.MACHINE:
            # Machine names may contain hyphens; BOOTDEV never does.
            hyphen = rest.rfind("-")
        fields.append(rest[:hyphen])
        rest = rest[hyphen + 1:]
    return TnSpec(tuple(fields))


def specs_match(entry: TnSpec, system: TnSpec) -> bool:
    """Return whether an entry's spec matches the system's spec.

    An entry with no fields matches everything. Otherwise the field counts
    must agree, and each pair of fields must be equal unless either is
    empty. A system BOOTDEV of ``internal`` matches any ``mmcblk0p<n>``.
    """
    if entry.field_count == 0:
        return True
    if entry.field_count != system.field_count:
        return False
    for index, (ent, sys_) in enumerate(zip(entry.fields, system.fields)):
        if not ent or not sys_:
            continue
        if (
            index == Field.BOOTDEV
            and sys_ == "internal"
            and len(ent) > 8
            and ent.startswith("mmcblk0p")
        ):
            continue
        if ent != sys_:
            return False
    return True


def _compat_fields(fields: tuple[str, ...]) -> list[str]:
    values = list(fields[:Field.BOOTDEV])
    board = values[Field.BOARDID]
    fab = fields[Field.FAB]
    sku = fields[Field.BOARDSKU]
    rev = fields[Field.BOARDREV]

    if board == "2180":
        # Jetson TX1
        values[Field.FAB] = ""
        values[Field.BOARDSKU] = ""
        values[Field.BOARDREV] = ""
        values[Field.CHIPREV] = ""
    elif board == "3448":
        # Jetson Nano
        if len(fab) == 3:
            values[Field.FAB] = {"0": "000", "1": "100", "2": "200"}.get(fab[0], "300")
        values[Field.BOARDREV] = ""
        values[Field.CHIPREV] = ""
    elif board == "3310":
        # Jetson TX2 (original 8GB)
        if len(fab) == 3 and fab != "B00" and fab[0] >= "B":
            values[Field.FAB] = "B01"
        values[Field.BOARDSKU] = ""
        values[Field.BOARDREV] = ""
        values[Field.CHIPREV] = ""
    elif board == "3489":
        # Jetson TX2-4GB and TX2i
        if len(fab) == 3:
            values[Field.FAB] = "200" if "0" <= fab[0] < "3" else "300"
        values[Field.BOARDSKU] = ""
        values[Field.BOARDREV] = ""
        values[Field.CHIPREV] = ""
    elif board == "3636":
        # Jetson TX2-NX
        values[Field.FAB] = ""
        values[Field.BOARDREV] = ""
        values[Field.CHIPREV] = ""
    elif board == "2888":
        # Jetson AGX Xavier
        if fab == "400":
            if sku == "0004":
                values[Field.BOARDREV] = ""
            else:
                values[Field.BOARDSKU] = "0001"
                if rev:
                    values[Field.BOARDREV] = "D.0" if "A" <= rev[0] <= "D" else "E.0"
        elif fab == "600" and sku == "0008":
            values[Field.BOARDREV] = ""
    elif board == "3668":
        # Jetson Xavier NX
        if len(fab) == 3 and fab != "301":
            values[Field.FAB] = "100"
        values[Field.BOARDSKU] = ""
        values[Field.BOARDREV] = ""
        values[Field.CHIPREV] = ""
    return values


def generate_compat_spec(tnspec: TnSpec) -> TnSpec | None:
    """Derive the compatibility spec for a system's TNSPEC.

    Fields that do not matter for the board are emptied (wildcards) or
    mapped to a canonical value; BOOTDEV is always a wildcard. Returns
    None if the TNSPEC does not have eight fields and a four-character
    board ID.
    """
    if tnspec.field_count != MAX_SPEC_FIELDS or len(tnspec.fields[Field.BOARDID]) != 4:
        return None
    return TnSpec(tuple(_compat_fields(tnspec.fields)) + ("",))


def _read_conf(path: str | PathLike[str]) -> str:
    with open(path, "rb") as f:
        data = f.read(_CONF_READ_SIZE)
    return _TRAILING_NONGRAPH.sub("", data.decode("latin-1"))


def construct_tnspec(
    boardspec: str,
    machine_conf: str | PathLike[str],
    rootfs_conf: str | PathLike[str],
) -> str:
    """Build the system TNSPEC from the board spec and configuration files.

    The machine name and root filesystem device are read from their files
    with trailing whitespace and control characters removed. Raises
    OSError if either file cannot be read.
    """
    machine = _read_conf(machine_conf)
    rootfs = _read_conf(rootfs_conf)
    spec = f"{boardspec}-{machine}-{rootfs}"
    return spec[:_SPEC_BUFFER_SIZE - 2]