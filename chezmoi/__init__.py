"""Manage dotfiles from a source directory of files whose names carry attributes."""

__version__ = "0.1.0"