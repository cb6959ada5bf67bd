[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "vboycore"
version = "0.1.0"
description = "Virtual Boy hardware components: timer, pad, sound unit, video processor, save states and core options"
requires-python = ">=3.10"
dependencies = []
keywords = ["virtual boy", "emulator", "vip", "vsu", "save state", "blip"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: System :: Emulators",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["vboycore"]

[tool.pytest.ini_options]
addopts = "-ra"
