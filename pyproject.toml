[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "tapremaster"
version = "0.1.0"
description = "Commodore 64 TAP tape image conversion, pause editing, pulse cleaning and batch reporting"
requires-python = ">=3.10"
dependencies = []
keywords = ["c64", "commodore", "tap", "tape", "emulation", "retro", "crc32"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Emulators",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["tapremaster"]

[tool.pytest.ini_options]
addopts = "-ra"
