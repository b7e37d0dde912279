[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "teachos"
version = "0.1.0"
description = "A small Unix-like teaching operating system modelled in Python: disk images, buffer cache, redo log, file system, pipes, console, keyboard and a priority-share scheduler"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "operating-system",
    "teaching",
    "file-system",
    "buffer-cache",
    "write-ahead-log",
    "scheduler",
    "mkfs",
    "grep",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Education",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Education",
    "Topic :: System :: Operating System",
    "Topic :: System :: Filesystems",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
teachos = "teachos.cli:main"
teachos-mkfs = "teachos.mkfs:main"
teachos-grep = "teachos.grep:main"

[tool.hatch.build.targets.wheel]
packages = ["teachos"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
