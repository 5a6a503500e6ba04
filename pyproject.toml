[build-system]
requires = ["setuptools>=61"]
build-backend = "setuptools.build_meta"

[project]
name = "chezmoi"
version = "0.1.0"
description = "Manage dotfiles from a source directory of files whose names carry attributes"
requires-python = ">=3.10"
dependencies = [
    "semver",
]
keywords = ["dotfiles", "configuration", "templates", "home directory"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Systems Administration",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.setuptools.packages.find]
include = ["chezmoi*"]

[tool.pytest.ini_options]
addopts = "-ra"
