[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "contfs"
version = "0.1.0"
description = "Filesystem utilities: directory diffs, disk usage, symlink-bounded root paths, atomic writes, group files and test fixtures"
requires-python = ">=3.10"
dependencies = []
keywords = ["filesystem", "diff", "disk-usage", "symlink", "hardlink", "layers"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
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
packages = ["contfs"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
