[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "wireglide"
version = "0.1.0"
description = "Tunnel control-plane building blocks: packet checksums, address parsing, peer tables, a control socket and a UDP test tool"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "networking",
    "tunnel",
    "checksum",
    "udp",
    "peer",
    "control socket",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
wireglide-nettool = "wireglide.nettool:main"

[tool.hatch.build.targets.wheel]
packages = ["wireglide"]

[tool.hatch.build.targets.sdist]
include = ["wireglide", "tests", "README.md", "pyproject.toml"]

[tool.pytest.ini_options]
addopts = "-ra"
