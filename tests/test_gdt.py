import struct

import pytest

from bootstage.gdt import Gdt, long_mode_gdt, protected_mode_gdt


def test_protected_mode_code_descriptor_is_flat_4gib_segment():
    assert protected_mode_gdt().code == 0x00CF9A000000FFFF


def test_long_mode_code_descriptor():
    assert long_mode_gdt().code == 0x00209B0000000000


def test_protected_mode_code_and_data_differ_only_in_executable_bit():
    gdt = protected_mode_gdt()
    assert gdt.code ^ gdt.data == 1 << 43


def test_long_mode_code_and_data_differ_in_executable_and_long_mode_bits():
    gdt = long_mode_gdt()
    assert gdt.code ^ gdt.data == (1 << 43) | (1 << 53)


@pytest.mark.parametrize("factory", [protected_mode_gdt, long_mode_gdt])
def test_null_descriptor_is_zero(factory):
    assert factory().zero == 0


@pytest.mark.parametrize("factory", [protected_mode_gdt, long_mode_gdt])
def test_to_bytes_round_trip(factory):
    gdt = factory()
    raw = gdt.to_bytes()
    assert len(raw) == 3 * 8
    assert struct.unpack("<QQQ", raw) == (gdt.zero, gdt.code, gdt.data)


@pytest.mark.parametrize("factory", [protected_mode_gdt, long_mode_gdt])
def test_limit_is_table_size_minus_one(factory):
    gdt = factory()
    assert gdt.limit == len(gdt.to_bytes()) - 1


def test_pointer_layout():
    gdt = long_mode_gdt()
    raw = gdt.pointer(0x7E00)
    assert len(raw) == 6
    assert struct.unpack("<HI", raw) == (gdt.limit, 0x7E00)


def test_pointer_rejects_base_beyond_32_bits():
    with pytest.raises(ValueError):
        protected_mode_gdt().pointer(1 << 32)


def test_pointer_rejects_negative_base():
    with pytest.raises(ValueError):
        protected_mode_gdt().pointer(-1)


def test_descriptor_must_fit_in_64_bits():
    with pytest.raises(ValueError):
        Gdt(zero=0, code=1 << 64, data=0)