"""Read-only access to FAT12/16 file systems: root directory lookup and cluster chains."""

from __future__ import annotations

import struct
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum
from itertools import takewhile

from bootstage.disk import DiskAccess

DIRECTORY_ENTRY_BYTES = 32
UNUSED_ENTRY_PREFIX = 0xE5
END_OF_DIRECTORY_PREFIX = 0

READ_ONLY = 0x01
HIDDEN = 0x02
SYSTEM = 0x04
VOLUME_ID = 0x08
DIRECTORY = 0x10
LONG_NAME = READ_ONLY | HIDDEN | SYSTEM | VOLUME_ID

_SPACE = 0x20
_BOOT_SECTOR_SIZE = 512
_ENTRY_FORMAT = struct.Struct(f"{DIRECTORY_ENTRY_BYTES}s")
_UTF16_UNIT = struct.Struct("<H")


class FatType(Enum):
    """The width of the entries in the file allocation table."""

    FAT12 = 12
    FAT16 = 16
    FAT32 = 32

    def fat_entry_defective(self) -> int:
        """The table value that marks a defective cluster."""
        return {
            FatType.FAT12: 0xFF7,
            FatType.FAT16: 0xFFF7,
            FatType.FAT32: 0x0FFFFFF7,
        }[self]


class FatLookupReason(Enum):
    """Why a table entry does not name a usable cluster."""

    FREE_CLUSTER = "free cluster"
    DEFECTIVE_CLUSTER = "defective cluster"
    UNSPECIFIED_ENTRY_ONE = "unspecified entry one"
    RESERVED_ENTRY = "reserved entry"


class FatLookupError(ValueError):
    """Raised when a cluster chain runs into an entry that is not part of a file."""

    def __init__(self, reason: FatLookupReason) -> None:
        super().__init__(reason.value)
        self.reason = reason


def _u16(raw: bytes, offset: int) -> int:
    return int.from_bytes(raw[offset : offset + 2], "little")


def _u32(raw: bytes, offset: int) -> int:
    return int.from_bytes(raw[offset : offset + 4], "little")


@dataclass(frozen=True)
class Bpb:
    """The BIOS parameter block at the start of a FAT volume."""

    bytes_per_sector: int
    sectors_per_cluster: int
    reserved_sector_count: int
    num_fats: int
    root_entry_count: int
    total_sectors_16: int
    fat_size_16: int
    total_sectors_32: int
    fat_size_32: int
    root_cluster: int

    @classmethod
    def parse(cls, disk: DiskAccess) -> Bpb:
        """Read the parameter block from the first sector of ``disk``."""
        disk.seek(0)
        raw = disk.read_exact(_BOOT_SECTOR_SIZE)
        total_sectors_16 = _u16(raw, 19)
        total_sectors_32 = _u32(raw, 32)
        if total_sectors_16 == 0 and total_sectors_32 != 0:
            fat_size_32 = _u32(raw, 36)
            root_cluster = _u32(raw, 44)
        elif total_sectors_16 != 0 and total_sectors_32 == 0:
            fat_size_32 = 0
            root_cluster = 0
        else:
            raise ValueError("ExactlyOneTotalSectorsFieldMustBeZero")
        return cls(
            bytes_per_sector=_u16(raw, 11),
            sectors_per_cluster=raw[13],
            reserved_sector_count=_u16(raw, 14),
            num_fats=raw[16],
            root_entry_count=_u16(raw, 17),
            total_sectors_16=total_sectors_16,
            fat_size_16=_u16(raw, 22),
            total_sectors_32=total_sectors_32,
            fat_size_32=fat_size_32,
            root_cluster=root_cluster,
        )

    def fat_size_in_sectors(self) -> int:
        if self.fat_size_16 != 0 and self.fat_size_32 == 0:
            return self.fat_size_16
        return self.fat_size_32

    def count_of_clusters(self) -> int:
        if self.bytes_per_sector == 0 or self.sectors_per_cluster == 0:
            raise ValueError("sector and cluster sizes must not be zero")
        root_dir_sectors = (
            self.root_entry_count * 32 + (self.bytes_per_sector - 1)
        ) // self.bytes_per_sector
        total_sectors = self.total_sectors_16 or self.total_sectors_32
        data_sectors = total_sectors - (
            self.reserved_sector_count
            + self.num_fats * self.fat_size_in_sectors()
            + root_dir_sectors
        )
        if data_sectors < 0:
            raise ValueError("the volume is smaller than its metadata")
        return data_sectors // self.sectors_per_cluster

    def fat_type(self) -> FatType:
        """Determine the FAT variant from the number of data clusters."""
        count = self.count_of_clusters()
        if count < 4085:
            return FatType.FAT12
        if count < 65525:
            return FatType.FAT16
        return FatType.FAT32

    def root_directory_size(self) -> int:
        return self.root_entry_count * DIRECTORY_ENTRY_BYTES

    def root_directory_offset(self) -> int:
        return (
            self.reserved_sector_count + self.num_fats * self.fat_size_16
        ) * self.bytes_per_sector

    def maximum_valid_cluster(self) -> int:
        return self.count_of_clusters() + 1

    def fat_offset(self) -> int:
        return self.reserved_sector_count * self.bytes_per_sector

    def data_offset(self) -> int:
        return self.root_directory_size() + (
            self.reserved_sector_count + self.fat_size_in_sectors() * self.num_fats
        ) * self.bytes_per_sector

    def bytes_per_cluster(self) -> int:
        return self.bytes_per_sector * self.sectors_per_cluster


@dataclass(frozen=True)
class File:
    """A file found in a directory."""

    first_cluster: int
    file_size: int


@dataclass(frozen=True)
class Cluster:
    """One cluster of a file: its number and where its bytes lie in the volume."""

    index: int
    start_offset: int
    len_bytes: int


@dataclass(frozen=True)
class DirectoryEntry:
    """A directory entry together with the raw long name that preceded it, if any."""

    short_name: str
    short_name_extension: str
    long_name: bytes
    file_size: int
    first_cluster: int
    attributes: int

    def is_directory(self) -> bool:
        return bool(self.attributes & DIRECTORY)


@dataclass(frozen=True)
class _NormalEntry:
    short_filename_main: str
    short_filename_extension: str
    attributes: int
    first_cluster: int
    file_size: int

    def eq_name(self, name: str) -> bool:
        return self.short_filename_main + self.short_filename_extension == name


@dataclass(frozen=True)
class _LongNameEntry:
    order: int
    name_1: bytes
    name_2: bytes
    name_3: bytes
    attributes: int
    checksum: int

    @property
    def raw_name(self) -> bytes:
        return self.name_1 + self.name_2 + self.name_3

    def name(self) -> str | None:
        """The decoded name up to its terminator, or ``None`` if it is not valid UTF-16."""
        raw = self.raw_name
        units = sum(1 for _ in takewhile(lambda u: u[0] != 0, _UTF16_UNIT.iter_unpack(raw)))
        try:
            return raw[: units * 2].decode("utf-16-le")
        except UnicodeDecodeError:
            return None

    def eq_name(self, name: str) -> bool:
        return self.name() == name


def _slice_to_string(data: bytes) -> str | None:
    start = next((i for i, c in enumerate(data) if c != _SPACE), None)
    if start is None:
        return ""
    relative = next((i for i, c in enumerate(data[start + 1 :]) if c == _SPACE), len(data))
    end = start + relative
    if end > len(data):
        raise ValueError("short name field is malformed")
    try:
        return data[start:end].decode("utf-8")
    except UnicodeDecodeError:
        return None


def _parse_raw_entry(raw: bytes) -> _NormalEntry | _LongNameEntry | None:
    attributes = raw[11]
    if attributes == LONG_NAME:
        return _LongNameEntry(
            order=raw[0],
            name_1=raw[1:11],
            name_2=raw[14:26],
            name_3=raw[28:32],
            attributes=attributes,
            checksum=raw[13],
        )
    main = _slice_to_string(raw[0:8])
    extension = _slice_to_string(raw[8:11])
    if main is None or extension is None:
        return None
    first_cluster = (_u16(raw, 20) << 16) | _u16(raw, 26)
    return _NormalEntry(
        short_filename_main=main,
        short_filename_extension=extension,
        attributes=attributes,
        first_cluster=first_cluster,
        file_size=_u32(raw, 28),
    )


def _to_directory_entry(entry: _NormalEntry, long_name: bytes = b"") -> DirectoryEntry:
    return DirectoryEntry(
        short_name=entry.short_filename_main,
        short_name_extension=entry.short_filename_extension,
        long_name=long_name,
        file_size=entry.file_size,
        first_cluster=entry.first_cluster,
        attributes=entry.attributes,
    )


class FileSystem:
    """A FAT volume read through a :class:`DiskAccess`."""

    def __init__(self, disk: DiskAccess) -> None:
        self.disk = disk
        self.bpb = Bpb.parse(disk)

    def _root_entries(self) -> Iterator[_NormalEntry | _LongNameEntry]:
        if self.bpb.fat_type() is FatType.FAT32:
            raise ValueError("FAT32 root directories are not supported")
        self.disk.seek(self.bpb.root_directory_offset())
        data = self.disk.read_sectors(self.bpb.root_directory_size())
        for (raw,) in _ENTRY_FORMAT.iter_unpack(data):
            if raw[0] == END_OF_DIRECTORY_PREFIX:
                return
            if raw[0] == UNUSED_ENTRY_PREFIX:
                continue
            entry = _parse_raw_entry(raw)
            if entry is not None:
                yield entry

    def find_file_in_root_dir(self, name: str) -> File | None:
        """Look up ``name`` in the root directory; directories are not returned."""
        entries = self._root_entries()
        found = next((e for e in entries if e.eq_name(name)), None)
        if found is None:
            return None
        if isinstance(found, _NormalEntry):
            entry = _to_directory_entry(found)
        else:
            following = next(entries, None)
            if following is None:
                raise ValueError("long name entry is not followed by a directory entry")
            if isinstance(following, _LongNameEntry):
                raise ValueError("names spanning several long name entries are not supported")
            entry = _to_directory_entry(following, found.raw_name)
        if entry.is_directory():
            return None
        return File(first_cluster=entry.first_cluster, file_size=entry.file_size)

    def file_clusters(self, file: File) -> Iterator[Cluster]:
        """Yield the clusters of ``file`` in order, following the allocation table."""
        bpb = self.bpb
        fat_type = bpb.fat_type()
        maximum = bpb.maximum_valid_cluster()
        data_offset = bpb.data_offset()
        fat_offset = bpb.fat_offset()
        cluster_size = bpb.bytes_per_cluster()
        current = file.first_cluster
        while True:
            cluster = classify_fat_entry(fat_type, current, maximum)
            if cluster is None:
                return
            start = data_offset + (cluster - 2) * cluster_size
            following = fat_entry_of_nth_cluster(self.disk, fat_type, fat_offset, cluster)
            yield Cluster(index=current, start_offset=start, len_bytes=cluster_size)
            current = following


def classify_fat_entry(fat_type: FatType, entry: int, maximum_valid_cluster: int) -> int | None:
    """Interpret a table value reached while following a file.

    Returns the cluster number for an allocated cluster and ``None`` at the
    end of the file; raises :class:`FatLookupError` otherwise.
    """
    if entry == 0:
        raise FatLookupError(FatLookupReason.FREE_CLUSTER)
    if entry == 1:
        raise FatLookupError(FatLookupReason.UNSPECIFIED_ENTRY_ONE)
    if entry <= maximum_valid_cluster:
        return entry
    defective = fat_type.fat_entry_defective()
    if entry < defective:
        raise FatLookupError(FatLookupReason.RESERVED_ENTRY)
    if entry == defective:
        raise FatLookupError(FatLookupReason.DEFECTIVE_CLUSTER)
    return None


def fat_entry_of_nth_cluster(disk: DiskAccess, fat_type: FatType, fat_start: int, n: int) -> int:
    """Read the allocation table entry of cluster ``n`` from the table at ``fat_start``."""
    if n < 2:
        raise ValueError("cluster numbers start at 2")
    if fat_type is FatType.FAT32:
        disk.seek(fat_start + n * 4)
        return int.from_bytes(disk.read_exact(4), "little") & 0x0FFFFFFF
    if fat_type is FatType.FAT16:
        disk.seek(fat_start + n * 2)
        return int.from_bytes(disk.read_exact(2), "little")
    disk.seek(fat_start + n + n // 2)
    entry16 = int.from_bytes(disk.read_exact(2), "little")
    if n & 1 == 0:
        return entry16 & 0xFFF
    return entry16 >> 4