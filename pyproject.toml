[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "blockstore"
version = "0.1.0"
description = "Stackable block stores: RAM and file disks, partitions, caches, RAID, tree and FAT file systems, and an in-process block server"
requires-python = ">=3.10"
dependencies = []
keywords = ["block store", "filesystem", "cache", "raid", "inode", "fat"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Filesystems",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["blockstore"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
