[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "hpingkit"
version = "0.1.0"
description = "Raw IPv4 packet construction from text descriptions, with checksums, option parsing and supporting utilities"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "networking",
    "packet",
    "raw-socket",
    "ip",
    "tcp",
    "udp",
    "icmp",
    "igrp",
    "checksum",
    "packet-crafting",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
hpingkit-apd = "hpingkit.apd:main"

[tool.hatch.build.targets.wheel]
packages = ["hpingkit"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 88
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
