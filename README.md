# bootstage

`bootstage` models the data formats and staging logic of an x86_64
bootloader that boots through the BIOS, in plain Python. With it you can
build, inspect and check boot-time structures: the bootloader configuration
blob a kernel carries, MBR partition tables, FAT12/16 file systems, E820
memory maps, VESA mode information, global descriptor tables and the
identity-mapping page tables used for the switch to long mode. A small
command drives the external build of the boot components.

The package has no dependencies beyond the standard library.

## Installation

```
pip install bootstage
```

To run the test suite:

```
pip install "bootstage[test]"
pytest
```

## Modules

| Module | Contents |
| --- | --- |
| `bootstage.version` | `VersionInfo`, `parse_version`, `BOOTLOADER_VERSION`, `CURRENT_VERSION` |
| `bootstage.mappings` | `Mapping`, `Mappings`, `FrameBuffer`, `ApiVersion`, `ConfigError` |
| `bootstage.config` | `BootloaderConfig` and its fixed 133-byte serialization |
| `bootstage.info` | `BootInfo`, `MemoryRegion`, `MemoryRegionKind`, `PixelFormat`, `FrameBufferInfo`, `FrameBuffer`, `TlsTemplate` |
| `bootstage.bios_info` | `BiosInfo`, `Region`, `BiosFramebufferInfo`, `BiosPixelFormat`, `E820MemoryRegion` |
| `bootstage.dap` | `DiskAddressPacket` (16-byte packed form) and `split_load`, which splits a load into packets of at most 32 sectors |
| `bootstage.disk` | `DiskAccess`: sector reads over a disk image (bytes or a binary file), relative to a partition start |
| `bootstage.mbr` | `PartitionTableEntry`, `get_partition`, `parse_partition_table`, `PartitionError` |
| `bootstage.fat` | `FileSystem`, `Bpb`, `FatType`, `File`, `Cluster`, `DirectoryEntry`, `FatLookupError`, `classify_fat_entry`, `fat_entry_of_nth_cluster` |
| `bootstage.memory_map` | `parse_e820_entry`, `parse_e820_entries` (at most 100 regions) |
| `bootstage.vesa` | `VesaModeInfo`, `pixel_format_from_positions`, `read_mode_list`, `select_best_mode` |
| `bootstage.gdt` | `Gdt`, `protected_mode_gdt`, `long_mode_gdt` |
| `bootstage.paging` | `PageTable`, `create_mappings` (2 MiB huge pages, one gigabyte per level-2 table) |
| `bootstage.stage2` | `locate_fat_partition`, `read_file`, `load_stages`, `BootLayout` |
| `bootstage.stage4` | `memory_region_kind`, `usable_after_bootloader_exit`, `to_framebuffer_info`, `max_physical_address` |
| `bootstage.builder` | `Component`, `install_command`, `build_component`, `convert_elf_to_bin`, `build_all`, `BuildError`, `main` |

## Examples

Serialize a configuration and read it back:

```python
from bootstage.config import BootloaderConfig
from bootstage.mappings import Mapping

config = BootloaderConfig()
blob = config.serialize()          # always 133 bytes
assert BootloaderConfig.deserialize(blob) == config

fixed = Mapping.fixed(0xF_0000_0000)
assert Mapping.deserialize(fixed.serialize()) == fixed
```

Malformed blobs raise `ConfigError` (a `ValueError`) from `bootstage.mappings`.

Read the partition table of a disk image:

```python
from bootstage.mbr import parse_partition_table

with open("disk.img", "rb") as image:
    sector = image.read(512)

for entry in parse_partition_table(sector[446:446 + 64]):
    print(entry.partition_type, entry.logical_block_address, entry.sector_count)
```

Look up a file on a FAT12/16 partition:

```python
from bootstage.disk import DiskAccess
from bootstage.fat import FileSystem

with open("disk.img", "rb") as image:
    fs = FileSystem(DiskAccess(image, base_offset=2048 * 512))
    file = fs.find_file_in_root_dir("boot.json")
    if file is not None:
        for cluster in fs.file_clusters(file):
            print(cluster.index, cluster.start_offset, cluster.len_bytes)
```

Work out where the second stage would place the later stages, the kernel,
ramdisk and `boot.json`:

```python
from bootstage.stage2 import load_stages

layout = load_stages(image_bytes, partition_table_bytes)
print(layout.kernel, layout.ramdisk, layout.last_used_addr)
```

`load_stages` looks for the partition of type `0x20` and reads the FAT
partition right after it. It raises `FileNotFoundError` when
`boot-stage-3`, `boot-stage-4` or `kernel-x86_64` is missing; the ramdisk and
config file are optional.

## Building the boot components

The `bootstage-build` command runs `cargo install` for the boot sector,
stages 2 to 4 and the UEFI application, all at once, into an output
directory. The BIOS parts are then converted to flat `.bin` files with
`llvm-objcopy` (taken from `$LLVM_OBJCOPY`, else found on `PATH`). When a
component's sources are present under the manifest directory they are built
from there; otherwise the published version is installed.

```
bootstage-build --out-dir build --manifest-dir .
bootstage-build --out-dir build --no-uefi
```

Options:

- `--out-dir`: where the artifacts go (default: `$OUT_DIR`; required)
- `--manifest-dir`: root of the checkout (default: `$CARGO_MANIFEST_DIR`, else the current directory)
- `--no-bios`: skip the BIOS components
- `--no-uefi`: skip the UEFI application

On success it prints `cargo:rerun-if-changed=...` and
`cargo:rustc-env=NAME=path` lines; on failure it prints the error and exits
with status 1. From Python, `build_all` does the same work and returns the
paths by environment variable name, raising `BuildError` on failure.

## What it does not do

- It does not boot anything or talk to firmware: BIOS calls, mode switches
  and writes to physical memory are modelled as data (packets, tables,
  layouts), not carried out.
- It does not create bootable disk images; it only reads existing ones.
- FAT32 root directories and long names spread over several directory
  entries are not supported.
- It does not load or relocate the kernel executable, build the kernel's
  page tables, or draw text on the framebuffer.
- Building requires the external toolchain (`cargo`, `llvm-objcopy`); the
  package does not compile anything itself.