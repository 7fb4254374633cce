import io

import pytest

from bootstage.disk import DiskAccess

SECTOR = 512


def _image(sectors):
    return b"".join(bytes([i % 256]) * SECTOR for i in range(sectors))


def test_seek_returns_offset():
    disk = DiskAccess(_image(4))
    assert disk.seek(700) == 700
    assert disk.current_offset == 700


def test_read_exact_within_sector():
    image = _image(8)
    disk = DiskAccess(image)
    disk.seek(SECTOR + 10)
    assert disk.read_exact(4) == image[SECTOR + 10 : SECTOR + 14]


def test_read_exact_across_sector_boundary():
    image = _image(8)
    disk = DiskAccess(image)
    disk.seek(2 * SECTOR - 4)
    assert disk.read_exact(8) == image[2 * SECTOR - 4 : 2 * SECTOR + 4]


def test_read_exact_advances_position():
    disk = DiskAccess(_image(8))
    disk.seek(100)
    disk.read_exact(20)
    assert disk.current_offset == 120


def test_read_exact_zero_length():
    disk = DiskAccess(_image(2))
    assert disk.read_exact(0) == b""


def test_read_exact_outside_window_raises():
    disk = DiskAccess(_image(8))
    disk.seek(SECTOR + 88)
    with pytest.raises(ValueError):
        disk.read_exact(1000)


def test_base_offset_shifts_reads():
    image = _image(8)
    disk = DiskAccess(image, base_offset=2 * SECTOR)
    disk.seek(3)
    assert disk.read_exact(2) == image[2 * SECTOR + 3 : 2 * SECTOR + 5]


def test_unaligned_base_offset_raises():
    with pytest.raises(ValueError):
        DiskAccess(_image(2), base_offset=100)


def test_read_sectors_aligned():
    image = _image(8)
    disk = DiskAccess(image)
    disk.seek(SECTOR)
    assert disk.read_sectors(2 * SECTOR) == image[SECTOR : 3 * SECTOR]
    assert disk.current_offset == 3 * SECTOR


def test_read_sectors_starts_at_sector_boundary():
    image = _image(8)
    disk = DiskAccess(image)
    disk.seek(SECTOR + 100)
    assert disk.read_sectors(SECTOR) == image[SECTOR : 2 * SECTOR]


def test_read_sectors_spanning_many_packets():
    image = _image(80)
    disk = DiskAccess(image)
    assert disk.read_sectors(80 * SECTOR) == image


def test_read_sectors_requires_sector_multiple():
    disk = DiskAccess(_image(2))
    with pytest.raises(ValueError):
        disk.read_sectors(100)
    with pytest.raises(ValueError):
        disk.read_sectors(0)


def test_read_past_end_raises_eof():
    disk = DiskAccess(_image(8))
    disk.seek(7 * SECTOR)
    with pytest.raises(EOFError):
        disk.read_sectors(2 * SECTOR)


def test_accepts_binary_stream():
    image = _image(4)
    disk = DiskAccess(io.BytesIO(image))
    disk.seek(3 * SECTOR)
    assert disk.read_exact(SECTOR) == image[3 * SECTOR :]


def test_negative_seek_raises():
    disk = DiskAccess(_image(1))
    with pytest.raises(ValueError):
        disk.seek(-1)