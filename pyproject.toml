[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "bootstage"
version = "0.11.10"
description = "Boot-time data formats and staging logic for an x86_64 BIOS bootloader: config serialization, MBR and FAT parsing, E820 maps, VESA modes, descriptor tables and page tables."
requires-python = ">=3.10"
dependencies = []
keywords = [
    "bootloader",
    "x86_64",
    "bios",
    "uefi",
    "mbr",
    "fat",
    "e820",
    "vesa",
    "gdt",
    "paging",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Boot",
    "Topic :: System :: Filesystems",
    "Topic :: Software Development :: Embedded Systems",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
bootstage-build = "bootstage.builder:main"

[tool.hatch.build.targets.wheel]
packages = ["bootstage"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
