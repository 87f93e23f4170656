[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "vsdfs"
version = "0.1.0"
description = "Build and read VSD filesystem images from prototype files or file lists"
requires-python = ">=3.10"
dependencies = []
keywords = ["filesystem", "disk-image", "mkfs", "inode", "prototype"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
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

[project.scripts]
vsd-mkproto = "vsdfs.proto:main"
vsd-mkfs = "vsdfs.vsd:main"
vsd-grep = "vsdfs.grep:main"

[tool.hatch.build.targets.wheel]
packages = ["vsdfs"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
