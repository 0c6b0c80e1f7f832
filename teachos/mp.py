"""Find and parse MultiProcessor configuration tables in a memory image."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field

MAX_CPUS = 8

MPPROC = 0x00
MPBUS = 0x01
MPIOAPIC = 0x02
MPIOINTR = 0x03
MPLINTR = 0x04

_MP_SIZE = 16
_MPCONF_SIZE = 44
_MPPROC_SIZE = 20
_MPIOAPIC_SIZE = 8
_OTHER_ENTRY_SIZE = 8


class MPError(Exception):
    """The machine is not a usable multiprocessor."""


@dataclass
class MPInfo:
    """What the configuration tables say about the machine."""

    lapic_addr: int
    cpus: list[int] = field(default_factory=list)
    ioapic_id: int = 0
    imcr: bool = False


def checksum(data) -> int:
    """Sum of the bytes modulo 256; valid tables sum to zero."""
    return sum(bytes(data)) & 0xFF


def search_floating(memory, addr: int, length: int):
    """Offset of an MP floating pointer in ``length`` bytes at ``addr``, or None."""
    for p in range(addr, addr + length, _MP_SIZE):
        if p < 0:
            continue
        if p + _MP_SIZE > len(memory):
            break
        candidate = bytes(memory[p:p + _MP_SIZE])
        if candidate[:4] == b"_MP_" and checksum(candidate) == 0:
            return p
    return None


def _search(memory):
    if len(memory) >= 0x415:
        bda = bytes(memory[0x400:0x415])
        p = ((bda[0x0F] << 8) | bda[0x0E]) << 4
        if p:
            found = search_floating(memory, p, 1024)
        else:
            p = ((bda[0x14] << 8) | bda[0x13]) * 1024
            found = search_floating(memory, p - 1024, 1024)
        if found is not None:
            return found
    return search_floating(memory, 0xF0000, 0x10000)


def find_config(memory):
    """Locate the floating pointer and a valid configuration table.

    Returns ``(mp_offset, conf_offset)`` or None.
    """
    mp = _search(memory)
    if mp is None:
        return None
    (conf,) = struct.unpack_from("<I", memory, mp + 4)
    if conf == 0 or conf + _MPCONF_SIZE > len(memory):
        return None
    if bytes(memory[conf:conf + 4]) != b"PCMP":
        return None
    (length,) = struct.unpack_from("<H", memory, conf + 4)
    version = memory[conf + 6]
    if version not in (1, 4):
        return None
    if conf + length > len(memory) or checksum(memory[conf:conf + length]) != 0:
        return None
    return mp, conf


def parse_mp(memory) -> MPInfo:
    """Read the processors and I/O APIC described by the MP tables."""
    found = find_config(memory)
    if found is None:
        raise MPError("Expect to run on an SMP")
    mp, conf = found
    (length,) = struct.unpack_from("<H", memory, conf + 4)
    (lapic_addr,) = struct.unpack_from("<I", memory, conf + 36)
    info = MPInfo(lapic_addr=lapic_addr, imcr=bool(memory[mp + 12]))

    p = conf + _MPCONF_SIZE
    end = conf + length
    while p < end:
        kind = memory[p]
        if kind == MPPROC:
            if len(info.cpus) < MAX_CPUS:
                info.cpus.append(memory[p + 1])
            p += _MPPROC_SIZE
        elif kind == MPIOAPIC:
            info.ioapic_id = memory[p + 1]
            p += _MPIOAPIC_SIZE
        elif kind in (MPBUS, MPIOINTR, MPLINTR):
            p += _OTHER_ENTRY_SIZE
        else:
            raise MPError("Didn't find a suitable machine")
    return info