[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "arcticsniff"
version = "0.3.0"
description = "Passive Modbus RTU sniffer and decoder for Arctic heat pumps, with a live web API and JSONL recording"
requires-python = ">=3.10"
keywords = ["modbus", "modbus-rtu", "sniffer", "heat-pump", "rs485", "websocket", "jsonl"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Environment :: Web Environment",
    "Intended Audience :: Developers",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Framework :: AsyncIO",
    "Topic :: Scientific/Engineering :: Interface Engine/Protocol Translator",
    "Topic :: Home Automation",
    "Topic :: System :: Monitoring",
]
dependencies = [
    "aiohttp>=3.8",
    "pyserial>=3.5",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
    "pytest-asyncio>=0.21",
]

[project.scripts]
arcticsniff = "arcticsniff.app:main"

[tool.hatch.build.targets.wheel]
packages = ["arcticsniff"]

[tool.hatch.build.targets.sdist]
include = ["arcticsniff", "tests"]

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
