"""Boot-time data formats and staging logic for an x86_64 BIOS bootloader, with a build driver."""

__version__ = "0.11.10"