"""Decoding of E820 memory map entries."""

from __future__ import annotations

from collections.abc import Iterable

from bootstage.bios_info import E820MemoryRegion

SMAP = 0x534D4150
ENTRY_BUFFER_SIZE = 24
MAX_ENTRIES = 100
_BASE_LEN = 20


def parse_e820_entry(buf: bytes) -> E820MemoryRegion | None:
    """Decode the bytes that one E820 call wrote.

    Returns ``None`` for an empty write or a region of length zero. The ACPI
    extended attributes are read only when exactly four bytes follow the
    20-byte base entry; otherwise they are zero.
    """
    buf = bytes(buf)
    if not buf:
        return None
    if len(buf) > ENTRY_BUFFER_SIZE:
        raise ValueError(f"an E820 entry holds at most {ENTRY_BUFFER_SIZE} bytes")
    if len(buf) < _BASE_LEN:
        raise ValueError(f"an E820 entry needs at least {_BASE_LEN} bytes, got {len(buf)}")
    start_addr = int.from_bytes(buf[0:8], "little")
    length = int.from_bytes(buf[8:16], "little")
    region_type = int.from_bytes(buf[16:20], "little")
    rest = buf[_BASE_LEN:]
    acpi = int.from_bytes(rest, "little") if len(rest) == 4 else 0
    if length == 0:
        return None
    return E820MemoryRegion(
        start_addr=start_addr,
        length=length,
        region_type=region_type,
        acpi_extended_attributes=acpi,
    )


def parse_e820_entries(buffers: Iterable[bytes]) -> list[E820MemoryRegion]:
    """Decode a sequence of E820 writes, dropping empty ones.

    At most :data:`MAX_ENTRIES` regions are kept; more raise ``ValueError``.
    """
    regions = []
    for buf in buffers:
        region = parse_e820_entry(buf)
        if region is None:
            continue
        if len(regions) >= MAX_ENTRIES:
            raise ValueError(f"memory map has more than {MAX_ENTRIES} regions")
        regions.append(region)
    return regions