"""The second BIOS stage: locating the boot partition and loading the later stages."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from bootstage.bios_info import Region
from bootstage.fat import FileSystem
from bootstage.mbr import PartitionTableEntry, parse_partition_table

SECTOR_SIZE = 512
PAGE_SIZE = 4096
DISK_BUFFER_SIZE = 0x4000

BOOTLOADER_SECOND_STAGE_PARTITION_TYPE = 0x20
FAT_PARTITION_TYPES = frozenset({0x01, 0x04, 0x06, 0x0E, 0x0B, 0x0C, 0x1B, 0x1C})

STAGE_3_DST = 0x0010_0000
STAGE_4_DST = 0x0013_0000
KERNEL_DST = 0x0100_0000

STAGE_3_NAME = "boot-stage-3"
STAGE_4_NAME = "boot-stage-4"
KERNEL_NAME = "kernel-x86_64"
RAMDISK_NAME = "ramdisk"
CONFIG_FILE_NAME = "boot.json"


class _ImageDisk:
    """Sector-based access to a partition inside a disk image held in memory."""

    def __init__(self, image: bytes, base_offset: int) -> None:
        self._image = image
        self._base_offset = base_offset
        self._current_offset = 0

    def seek(self, offset: int) -> int:
        self._current_offset = offset
        return self._current_offset

    def read_exact(self, length: int) -> bytes:
        start = self._base_offset + self._current_offset
        data = self._image[start : start + length]
        if len(data) != length:
            raise ValueError(f"cannot read {length} bytes at disk offset {start:#x}")
        self._current_offset += length
        return bytes(data)

    def read_sectors(self, length: int) -> bytes:
        if length % SECTOR_SIZE:
            raise ValueError("sector reads must be a multiple of the sector size")
        absolute = self._base_offset + self._current_offset
        start = absolute // SECTOR_SIZE * SECTOR_SIZE
        if start >= len(self._image):
            raise ValueError(f"disk offset {start:#x} lies beyond the end of the disk")
        data = bytes(self._image[start : start + length]).ljust(length, b"\x00")
        self._current_offset = absolute + length
        return data


@dataclass(frozen=True)
class BootLayout:
    """Where the second stage placed each loaded file in physical memory."""

    stage_3: Region
    stage_4: Region
    kernel: Region
    ramdisk: Region
    config_file: Region
    contents: dict[str, bytes] = field(default_factory=dict, compare=False, repr=False)

    @property
    def last_used_addr(self) -> int:
        """The last byte address occupied by the loaded files."""
        return self.config_file.start + self.config_file.length - 1


def locate_fat_partition(entries: Sequence[PartitionTableEntry]) -> PartitionTableEntry:
    """Return the FAT partition that follows the second-stage partition.

    Raises ``LookupError`` when either partition is missing and ``ValueError``
    when the following partition is not a FAT partition.
    """
    index = next(
        (
            i
            for i, entry in enumerate(entries)
            if entry.partition_type == BOOTLOADER_SECOND_STAGE_PARTITION_TYPE
        ),
        None,
    )
    if index is None:
        raise LookupError("no second stage partition found")
    if index + 1 >= len(entries):
        raise LookupError("no partition follows the second stage partition")
    fat_partition = entries[index + 1]
    if fat_partition.partition_type not in FAT_PARTITION_TYPES:
        raise ValueError(
            f"partition type {fat_partition.partition_type:#04x} is not a FAT partition"
        )
    return fat_partition


def _round_up_to_sector(length: int) -> int:
    return -(-length // SECTOR_SIZE) * SECTOR_SIZE


def read_file(fs: FileSystem, disk, name: str) -> bytes | None:
    """Read the file ``name`` from the root directory of ``fs``.

    Cluster data is read through ``disk`` in chunks of at most
    :data:`DISK_BUFFER_SIZE` bytes. Returns ``None`` if the file does not exist.
    """
    file = fs.find_file_in_root_dir(name)
    if file is None:
        return None
    chunks = []
    for cluster in fs.file_clusters(file):
        cluster_end = cluster.start_offset + cluster.len_bytes
        for start in range(cluster.start_offset, cluster_end, DISK_BUFFER_SIZE):
            length = min(DISK_BUFFER_SIZE, cluster_end - start)
            disk.seek(start)
            data = disk.read_sectors(_round_up_to_sector(length))
            chunks.append(bytes(data[:length]))
    content = b"".join(chunks)
    if len(content) < file.file_size:
        raise ValueError(f"cluster chain of {name!r} is shorter than the file")
    return content[: file.file_size]


def load_stages(image: bytes, partition_table: bytes) -> BootLayout:
    """Load the third and fourth stage, the kernel, ramdisk and config file.

    ``image`` is the whole disk and ``partition_table`` the 64 raw bytes of
    its partition table. Raises ``FileNotFoundError`` when a required file
    is missing.
    """
    image = bytes(image)
    fat_partition = locate_fat_partition(parse_partition_table(partition_table))
    base_offset = fat_partition.logical_block_address * SECTOR_SIZE
    fs = FileSystem(_ImageDisk(image, base_offset))
    disk = _ImageDisk(image, base_offset)

    def required(name: str) -> bytes:
        data = read_file(fs, disk, name)
        if data is None:
            raise FileNotFoundError(f"file not found: {name}")
        return data

    stage_3 = required(STAGE_3_NAME)
    if STAGE_4_DST <= STAGE_3_DST + len(stage_3):
        raise ValueError("stage 3 overlaps the load address of stage 4")
    stage_4 = required(STAGE_4_NAME)
    kernel = required(KERNEL_NAME)
    if not kernel:
        raise ValueError("the kernel file is empty")
    kernel_pages = (len(kernel) - 1) // PAGE_SIZE + 1
    ramdisk_start = KERNEL_DST + kernel_pages * PAGE_SIZE
    ramdisk = read_file(fs, disk, RAMDISK_NAME) or b""
    config_file_start = ramdisk_start + len(ramdisk)
    config_file = read_file(fs, disk, CONFIG_FILE_NAME) or b""

    contents = {STAGE_3_NAME: stage_3, STAGE_4_NAME: stage_4, KERNEL_NAME: kernel}
    if ramdisk:
        contents[RAMDISK_NAME] = ramdisk
    if config_file:
        contents[CONFIG_FILE_NAME] = config_file

    return BootLayout(
        stage_3=Region(STAGE_3_DST, len(stage_3)),
        stage_4=Region(STAGE_4_DST, len(stage_4)),
        kernel=Region(KERNEL_DST, len(kernel)),
        ramdisk=Region(ramdisk_start, len(ramdisk)),
        config_file=Region(config_file_start, len(config_file)),
        contents=contents,
    )