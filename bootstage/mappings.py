"""Virtual memory mapping settings and related parts of the bootloader configuration."""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import total_ordering

from bootstage.version import CURRENT_VERSION

U64_MAX = (1 << 64) - 1


class ConfigError(ValueError):
    """Raised when serialized configuration data is malformed."""


@dataclass(frozen=True)
class ApiVersion:
    """A semver-compatible version of the bootloader API."""

    version_major: int
    version_minor: int
    version_patch: int
    pre_release: bool

    @classmethod
    def current(cls) -> ApiVersion:
        """Return the version of this bootloader API."""
        return cls(
            version_major=CURRENT_VERSION.major,
            version_minor=CURRENT_VERSION.minor,
            version_patch=CURRENT_VERSION.patch,
            pre_release=CURRENT_VERSION.pre_release,
        )


@total_ordering
@dataclass(frozen=True)
class Mapping:
    """How a memory region is mapped: dynamically (``address is None``) or at a fixed address."""

    address: int | None = None

    SERIALIZED_LEN = 9

    def __post_init__(self) -> None:
        if self.address is not None and not 0 <= self.address <= U64_MAX:
            raise ValueError(f"address {self.address:#x} does not fit in 64 bits")

    @classmethod
    def dynamic(cls) -> Mapping:
        """Look for an unused virtual memory region at runtime."""
        return cls(None)

    @classmethod
    def fixed(cls, address: int) -> Mapping:
        """Map the region at the given (page-aligned) virtual address."""
        return cls(address)

    @property
    def is_dynamic(self) -> bool:
        return self.address is None

    def _sort_key(self) -> tuple[int, int]:
        return (0, 0) if self.address is None else (1, self.address)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Mapping):
            return NotImplemented
        return self._sort_key() < other._sort_key()

    def serialize(self) -> bytes:
        """Encode as a tag byte followed by a little-endian 64-bit address."""
        if self.address is None:
            return bytes(self.SERIALIZED_LEN)
        return b"\x01" + self.address.to_bytes(8, "little")

    @classmethod
    def deserialize(cls, data: bytes) -> Mapping:
        """Decode bytes produced by :meth:`serialize`."""
        data = bytes(data)
        if len(data) != cls.SERIALIZED_LEN:
            raise ConfigError("invalid mapping format")
        variant, address = data[0], data[1:]
        if variant == 0 and address == bytes(8):
            return cls.dynamic()
        if variant == 1:
            return cls.fixed(int.from_bytes(address, "little"))
        raise ConfigError("invalid mapping value")


@dataclass
class Mappings:
    """The virtual memory mappings the bootloader creates for the kernel."""

    kernel_stack: Mapping = field(default_factory=Mapping.dynamic)
    kernel_base: Mapping = field(default_factory=Mapping.dynamic)
    boot_info: Mapping = field(default_factory=Mapping.dynamic)
    framebuffer: Mapping = field(default_factory=Mapping.dynamic)
    physical_memory: Mapping | None = None
    page_table_recursive: Mapping | None = None
    aslr: bool = False
    dynamic_range_start: int | None = None
    dynamic_range_end: int | None = None
    ramdisk_memory: Mapping = field(default_factory=Mapping.dynamic)


@dataclass
class FrameBuffer:
    """Minimum framebuffer dimensions requested by the kernel."""

    minimum_framebuffer_height: int | None = None
    minimum_framebuffer_width: int | None = None