[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "sponge"
version = "0.1.0"
description = "A small user-space networking toolkit: byte streams, stream reassembly, ARP-backed network interfaces, a longest-prefix-match router and a few socket commands"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "networking",
    "arp",
    "ethernet",
    "ipv4",
    "router",
    "reassembly",
    "byte-stream",
    "udp-relay",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
    "Topic :: Internet",
    "Topic :: Education",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
sponge-network-simulator = "sponge.network_simulator:main"
sponge-tcp-native = "sponge.tcp_native:main"
sponge-webget = "sponge.webget:main"
sponge-bouncer = "sponge.bouncer:main"

[tool.hatch.build.targets.wheel]
packages = ["sponge"]

[tool.hatch.build.targets.sdist]
include = ["sponge", "tests"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
