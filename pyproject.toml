[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "blemodem"
version = "0.1.0"
description = "Framed host-to-modem wire protocol, transmit buffer pool and asyncio transport queues for a BLE modem link"
requires-python = ">=3.10"
dependencies = []
keywords = ["ble", "bluetooth", "modem", "protocol", "crc16", "spi", "framing"]
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
    "Framework :: AsyncIO",
    "Topic :: Communications",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
    "hypothesis",
]

[tool.hatch.build.targets.wheel]
packages = ["blemodem"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
