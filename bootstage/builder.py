"""Builds the bootloader stages with cargo and converts them to flat binaries."""

from __future__ import annotations

import argparse
import os
import shutil
import subprocess
import sys
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from bootstage.version import BOOTLOADER_VERSION

_BUILD_STD = ("-Zbuild-std=core", "-Zbuild-std-features=compiler-builtins-mem")
_REMOVED_ENV = ("RUSTFLAGS", "CARGO_ENCODED_RUSTFLAGS")
_BIOS_REMOVED_ENV = ("RUSTC_WORKSPACE_WRAPPER",)


class BuildError(RuntimeError):
    """Raised when building or converting a bootloader stage fails."""


@dataclass(frozen=True)
class _Spec:
    crate: str
    local_path: tuple[str, ...]
    target: str
    profile: str | None
    binary_name: str
    env_var: str
    description: str
    extra_rerun: tuple[str, ...] = ()


class Component(Enum):
    """A separately built part of the bootloader."""

    BOOT_SECTOR = _Spec(
        crate="bootloader-x86_64-bios-boot-sector",
        local_path=("bios", "boot_sector"),
        target="i386-code16-boot-sector.json",
        profile="stage-1",
        binary_name="bootloader-x86_64-bios-boot-sector",
        env_var="BIOS_BOOT_SECTOR_PATH",
        description="bios boot sector",
    )
    STAGE_2 = _Spec(
        crate="bootloader-x86_64-bios-stage-2",
        local_path=("bios", "stage-2"),
        target="i386-code16-stage-2.json",
        profile="stage-2",
        binary_name="bootloader-x86_64-bios-stage-2",
        env_var="BIOS_STAGE_2_PATH",
        description="bios second stage",
        extra_rerun=("bios/common",),
    )
    STAGE_3 = _Spec(
        crate="bootloader-x86_64-bios-stage-3",
        local_path=("bios", "stage-3"),
        target="i686-stage-3.json",
        profile="stage-3",
        binary_name="bootloader-x86_64-bios-stage-3",
        env_var="BIOS_STAGE_3_PATH",
        description="bios stage-3",
    )
    STAGE_4 = _Spec(
        crate="bootloader-x86_64-bios-stage-4",
        local_path=("bios", "stage-4"),
        target="x86_64-stage-4.json",
        profile="stage-4",
        binary_name="bootloader-x86_64-bios-stage-4",
        env_var="BIOS_STAGE_4_PATH",
        description="bios stage-4",
    )
    UEFI = _Spec(
        crate="bootloader-x86_64-uefi",
        local_path=("uefi",),
        target="x86_64-unknown-uefi",
        profile=None,
        binary_name="bootloader-x86_64-uefi.efi",
        env_var="UEFI_BOOTLOADER_PATH",
        description="uefi bootloader",
        extra_rerun=("common",),
    )

    @property
    def crate(self) -> str:
        return self.value.crate

    @property
    def binary_name(self) -> str:
        return self.value.binary_name

    @property
    def env_var(self) -> str:
        return self.value.env_var

    @property
    def description(self) -> str:
        return self.value.description

    @property
    def is_bios(self) -> bool:
        return self is not Component.UEFI

    def local_path(self, manifest_dir: Path | str) -> Path:
        """The directory holding the component's sources in a local checkout."""
        return Path(manifest_dir).joinpath(*self.value.local_path)

    def rerun_paths(self, manifest_dir: Path | str) -> list[Path]:
        """Paths whose changes require a rebuild, for a local checkout."""
        local = self.local_path(manifest_dir)
        if not local.exists():
            return []
        extra = [Path(manifest_dir).joinpath(*p.split("/")) for p in self.value.extra_rerun]
        return [local, *extra]


BIOS_COMPONENTS = (
    Component.BOOT_SECTOR,
    Component.STAGE_2,
    Component.STAGE_3,
    Component.STAGE_4,
)


def install_command(
    component: Component,
    out_dir: Path | str,
    manifest_dir: Path | str,
    version: str = BOOTLOADER_VERSION,
    cargo: str | None = None,
) -> list[str]:
    """Return the ``cargo install`` command line that builds ``component``.

    A local checkout of the component is built from its path; otherwise the
    published crate of ``version`` is used.
    """
    cargo = cargo or os.environ.get("CARGO", "cargo")
    cmd = [cargo, "install", component.crate]
    local = component.local_path(manifest_dir)
    if local.exists():
        cmd += ["--path", str(local)]
    else:
        cmd += ["--version", version]
    cmd.append("--locked")
    cmd += ["--target", component.value.target]
    if component.value.profile is not None:
        cmd += ["--profile", component.value.profile]
    cmd += list(_BUILD_STD)
    cmd += ["--root", str(out_dir)]
    return cmd


def _build_env(component: Component) -> dict[str, str]:
    removed = set(_REMOVED_ENV)
    if component.is_bios:
        removed.update(_BIOS_REMOVED_ENV)
    return {key: value for key, value in os.environ.items() if key not in removed}


def _find_objcopy() -> str:
    configured = os.environ.get("LLVM_OBJCOPY")
    if configured:
        return configured
    found = shutil.which("llvm-objcopy")
    if found is None:
        raise BuildError("LlvmObjcopyNotFound")
    return found


def build_component(
    component: Component,
    out_dir: Path | str,
    manifest_dir: Path | str,
    cargo: str | None = None,
) -> Path:
    """Build ``component`` into ``out_dir`` and return the path of the result.

    BIOS stages are converted to flat binaries; the UEFI bootloader is
    returned as built.
    """
    out_dir = Path(out_dir)
    cmd = install_command(component, out_dir, manifest_dir, cargo=cargo)
    try:
        result = subprocess.run(cmd, env=_build_env(component))
    except OSError as exc:
        raise BuildError(
            f"failed to run cargo install for {component.description}: {exc}"
        ) from exc
    if result.returncode != 0:
        raise BuildError(f"failed to build {component.description}")
    path = out_dir / "bin" / component.binary_name
    if not path.exists():
        raise BuildError(
            f"{component.description} executable does not exist after building"
        )
    if component.is_bios:
        return convert_elf_to_bin(path, _find_objcopy())
    return path


def convert_elf_to_bin(elf_path: Path | str, objcopy: str) -> Path:
    """Convert an ELF executable to a flat binary next to it, with suffix ``.bin``."""
    elf_path = Path(elf_path)
    flat_binary_path = elf_path.with_suffix(".bin")
    cmd = [
        objcopy,
        "-I",
        "elf64-x86-64",
        "-O",
        "binary",
        "--binary-architecture=i386:x86-64",
        str(elf_path),
        str(flat_binary_path),
    ]
    try:
        result = subprocess.run(cmd, capture_output=True)
    except OSError as exc:
        raise BuildError(f"failed to execute llvm-objcopy command: {exc}") from exc
    if result.returncode != 0:
        stderr = result.stderr or b""
        if isinstance(stderr, bytes):
            stderr = stderr.decode("utf-8", errors="replace")
        raise BuildError(f"objcopy failed: {stderr}")
    return flat_binary_path


def build_all(
    out_dir: Path | str,
    manifest_dir: Path | str,
    bios: bool = True,
    uefi: bool = True,
) -> dict[str, Path]:
    """Build the selected components concurrently.

    Returns a mapping from each component's environment variable name to the
    path of its built artifact.
    """
    components: list[Component] = []
    if uefi:
        components.append(Component.UEFI)
    if bios:
        components.extend(BIOS_COMPONENTS)
    if not components:
        return {}
    with ThreadPoolExecutor(max_workers=len(components)) as pool:
        futures = [
            (component, pool.submit(build_component, component, out_dir, manifest_dir))
            for component in components
        ]
        return {component.env_var: future.result() for component, future in futures}


def main(argv: list[str] | None = None) -> int:
    """Build the bootloader stages and print their paths as cargo directives."""
    parser = argparse.ArgumentParser(description="Build the bootloader stages.")
    parser.add_argument(
        "--out-dir",
        default=os.environ.get("OUT_DIR"),
        help="directory receiving the built artifacts (default: $OUT_DIR)",
    )
    parser.add_argument(
        "--manifest-dir",
        default=os.environ.get("CARGO_MANIFEST_DIR", os.getcwd()),
        help="root of the bootloader checkout",
    )
    parser.add_argument("--no-bios", action="store_true", help="skip the BIOS stages")
    parser.add_argument("--no-uefi", action="store_true", help="skip the UEFI bootloader")
    args = parser.parse_args(argv)
    if not args.out_dir:
        parser.error("an output directory is required (--out-dir or $OUT_DIR)")

    bios = not args.no_bios
    uefi = not args.no_uefi
    selected = ([Component.UEFI] if uefi else []) + (list(BIOS_COMPONENTS) if bios else [])
    try:
        paths = build_all(args.out_dir, args.manifest_dir, bios=bios, uefi=uefi)
    except BuildError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    for component in selected:
        for path in component.rerun_paths(args.manifest_dir):
            print(f"cargo:rerun-if-changed={path}")
    for name, path in paths.items():
        print(f"cargo:rustc-env={name}={path}")
    return 0