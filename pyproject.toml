[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "teachos"
version = "0.1.0"
description = "File system, disk image builder, console, keyboard decoding and user tools of a small teaching operating system"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "operating-system",
    "file-system",
    "buffer-cache",
    "write-ahead-log",
    "inode",
    "mkfs",
    "grep",
    "education",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Education",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Operating System",
    "Topic :: System :: Filesystems",
    "Topic :: Education",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
teachos-mkfs = "teachos.mkfs:main"
teachos-grep = "teachos.grep:main"

[tool.hatch.build.targets.wheel]
packages = ["teachos"]

[tool.pytest.ini_options]
addopts = "-ra"
