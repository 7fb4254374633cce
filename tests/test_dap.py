import struct

import pytest

from bootstage.dap import (
    MAX_SECTORS_PER_LOAD,
    PACKET_SIZE,
    SECTOR_SIZE,
    DiskAddressPacket,
    split_load,
)


def test_pack_layout():
    packet = DiskAddressPacket.from_lba(5, 3, 0x7E00)
    data = packet.pack()
    assert len(data) == PACKET_SIZE
    assert data[0] == 0x10
    assert data[1] == 0
    assert struct.unpack("<HHHQ", data[2:]) == (3, packet.offset, packet.segment, 5)


def test_from_lba_splits_address():
    for target in (0, 0x7C00, 0x7C0F, 0x12345, 0xFFFFF):
        packet = DiskAddressPacket.from_lba(0, 1, target)
        assert packet.offset < 16
        assert packet.segment * 16 + packet.offset == target
        assert packet.target_addr == target


def test_segment_overflow_raises():
    with pytest.raises(ValueError):
        DiskAddressPacket.from_lba(0, 1, 0x100000)


def test_negative_target_raises():
    with pytest.raises(ValueError):
        DiskAddressPacket.from_lba(0, 1, -1)


def test_sector_count_must_fit_16_bits():
    with pytest.raises(ValueError):
        DiskAddressPacket.from_lba(0, 0x10000, 0)


def test_split_load_covers_all_sectors():
    packets = list(split_load(100, 75, 0x8000))
    assert sum(p.number_of_sectors for p in packets) == 75
    assert all(p.number_of_sectors <= MAX_SECTORS_PER_LOAD for p in packets)
    assert packets[0].start_lba == 100
    for previous, current in zip(packets, packets[1:]):
        assert current.start_lba == previous.start_lba + previous.number_of_sectors
        assert (
            current.target_addr
            == previous.target_addr + previous.number_of_sectors * SECTOR_SIZE
        )


def test_split_load_small_request_is_single_packet():
    packets = list(split_load(7, 4, 0x9000))
    assert packets == [DiskAddressPacket.from_lba(7, 4, 0x9000)]


def test_split_load_zero_sectors_yields_one_empty_packet():
    packets = list(split_load(1, 0, 0))
    assert [p.number_of_sectors for p in packets] == [0]


def test_split_load_negative_count_raises():
    with pytest.raises(ValueError):
        list(split_load(0, -1, 0))