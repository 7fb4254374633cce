"""The identity-mapped page tables set up before switching to long mode."""

from __future__ import annotations

import struct
from collections.abc import Sequence
from dataclasses import dataclass, field

PRESENT = 1 << 0
WRITABLE = 1 << 1
HUGE_PAGE = 1 << 7
PAGE_SIZE = 4096
ENTRY_COUNT = 512
HUGE_PAGE_SIZE = 2 * 1024 * 1024
GIGABYTE = 1024 * 1024 * 1024
LEVEL_2_TABLE_COUNT = 10

_U64_MAX = (1 << 64) - 1
_TABLE_FORMAT = struct.Struct(f"<{ENTRY_COUNT}Q")


def _empty_entries() -> list[int]:
    return [0] * ENTRY_COUNT


@dataclass
class PageTable:
    """A page table of 512 64-bit entries."""

    entries: list[int] = field(default_factory=_empty_entries)

    def __post_init__(self) -> None:
        self.entries = list(self.entries)
        if len(self.entries) != ENTRY_COUNT:
            raise ValueError(f"a page table has {ENTRY_COUNT} entries, got {len(self.entries)}")
        if any(not 0 <= entry <= _U64_MAX for entry in self.entries):
            raise ValueError("page table entries must fit in 64 bits")

    def to_bytes(self) -> bytes:
        """Return the table as it lies in memory."""
        return _TABLE_FORMAT.pack(*self.entries)


def _check_table_address(address: int, name: str) -> None:
    if not 0 <= address <= _U64_MAX or address % PAGE_SIZE:
        raise ValueError(f"{name} {address:#x} must be a page-aligned 64-bit address")


def create_mappings(
    level_4_addr: int, level_3_addr: int, level_2_addrs: Sequence[int]
) -> tuple[PageTable, PageTable, list[PageTable]]:
    """Build tables that identity-map one gigabyte per level-2 table with 2 MiB pages.

    The tables are assumed to lie at the given physical addresses; the
    level-4 address is only checked, as nothing points to it.
    """
    _check_table_address(level_4_addr, "level 4 table address")
    _check_table_address(level_3_addr, "level 3 table address")
    if len(level_2_addrs) > ENTRY_COUNT:
        raise ValueError(f"at most {ENTRY_COUNT} level 2 tables fit in one level 3 table")
    for address in level_2_addrs:
        _check_table_address(address, "level 2 table address")

    common_flags = PRESENT | WRITABLE
    level_4 = PageTable()
    level_3 = PageTable()
    level_4.entries[0] = level_3_addr | common_flags
    level_2_tables = []
    for i, address in enumerate(level_2_addrs):
        level_3.entries[i] = address | common_flags
        offset = i * GIGABYTE
        level_2_tables.append(
            PageTable(
                [
                    (offset + j * HUGE_PAGE_SIZE) | common_flags | HUGE_PAGE
                    for j in range(ENTRY_COUNT)
                ]
            )
        )
    return level_4, level_3, level_2_tables