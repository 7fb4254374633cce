"""Reading entries of a master boot record partition table."""

from __future__ import annotations

from dataclasses import dataclass

ENTRY_SIZE = 16
MAX_ENTRIES = 4
BOOTABLE_FLAG = 0x80


class PartitionError(ValueError):
    """Raised when a partition table entry cannot be read.

    ``code`` is the single-character failure code of the boot sector.
    """

    def __init__(self, code: str) -> None:
        super().__init__(f"partition table error {code!r}")
        self.code = code


@dataclass(frozen=True)
class PartitionTableEntry:
    """An entry in a partition table."""

    bootable: bool
    partition_type: int
    logical_block_address: int
    sector_count: int

    def __post_init__(self) -> None:
        if not 0 <= self.partition_type <= 0xFF:
            raise ValueError("partition type must fit in one byte")
        for name in ("logical_block_address", "sector_count"):
            if not 0 <= getattr(self, name) < (1 << 32):
                raise ValueError(f"{name} must fit in 32 bits")

    def to_bytes(self) -> bytes:
        """Encode as a 16-byte entry with zeroed CHS fields."""
        return (
            bytes([BOOTABLE_FLAG if self.bootable else 0, 0, 0, 0, self.partition_type, 0, 0, 0])
            + self.logical_block_address.to_bytes(4, "little")
            + self.sector_count.to_bytes(4, "little")
        )


def get_partition(partitions_raw: bytes, index: int) -> PartitionTableEntry:
    """Read entry ``index`` of a raw partition table.

    Raises :class:`PartitionError` with the boot sector's code when the data
    is too short.
    """
    if index < 0:
        raise PartitionError("c")
    offset = index * ENTRY_SIZE
    if offset > len(partitions_raw):
        raise PartitionError("c")
    buffer = bytes(partitions_raw[offset:])
    if len(buffer) < 1:
        raise PartitionError("d")
    if len(buffer) < 5:
        raise PartitionError("e")
    if len(buffer) < 12:
        raise PartitionError("f")
    if len(buffer) < 16:
        raise PartitionError("g")
    return PartitionTableEntry(
        bootable=buffer[0] == BOOTABLE_FLAG,
        partition_type=buffer[4],
        logical_block_address=int.from_bytes(buffer[8:12], "little"),
        sector_count=int.from_bytes(buffer[12:16], "little"),
    )


def parse_partition_table(raw: bytes) -> list[PartitionTableEntry]:
    """Read all four entries of a 64-byte partition table."""
    table = bytes(raw[: ENTRY_SIZE * MAX_ENTRIES])
    return [get_partition(table, index) for index in range(MAX_ENTRIES)]