"""Attributes encoded in the names of files and directories in the source state."""

from __future__ import annotations

import os
import stat
from dataclasses import dataclass, field

DOT_PREFIX = "dot_"
EMPTY_PREFIX = "empty_"
ENCRYPTED_PREFIX = "encrypted_"
EXACT_PREFIX = "exact_"
EXECUTABLE_PREFIX = "executable_"
ONCE_PREFIX = "once_"
PRIVATE_PREFIX = "private_"
RUN_PREFIX = "run_"
SYMLINK_PREFIX = "symlink_"
TEMPLATE_SUFFIX = ".tmpl"


def _strip_prefix(name: str, prefix: str) -> tuple[str, bool]:
    if name.startswith(prefix):
        return name[len(prefix):], True
    return name, False


def _source_basename(name: str) -> str:
    if name.startswith("."):
        return DOT_PREFIX + name[1:]
    return name


def _target_basename(name: str) -> str:
    name, dotted = _strip_prefix(name, DOT_PREFIX)
    return "." + name if dotted else name


@dataclass(frozen=True)
class DirAttributes:
    """Attributes parsed from a source directory name."""

    name: str
    exact: bool = False
    perm: int = 0o777

    def source_name(self) -> str:
        """Return the source name that encodes these attributes."""
        prefix = ""
        if self.exact:
            prefix += EXACT_PREFIX
        if self.perm & 0o077 == 0:
            prefix += PRIVATE_PREFIX
        return prefix + _source_basename(self.name)


def parse_dir_attributes(source_name: str) -> DirAttributes:
    """Parse a single source directory name."""
    name, exact = _strip_prefix(source_name, EXACT_PREFIX)
    perm = 0o777
    name, private = _strip_prefix(name, PRIVATE_PREFIX)
    if private:
        perm &= 0o700
    return DirAttributes(name=_target_basename(name), exact=exact, perm=perm)


@dataclass(frozen=True)
class FileAttributes:
    """Attributes parsed from a source file name.

    ``mode`` holds the permission bits, plus ``stat.S_IFLNK`` for symlinks.
    """

    name: str
    mode: int = 0o666
    empty: bool = False
    encrypted: bool = False
    template: bool = False

    @property
    def perm(self) -> int:
        """The permission bits of the mode."""
        return stat.S_IMODE(self.mode) & 0o777

    def is_symlink(self) -> bool:
        """Return whether these attributes describe a symlink."""
        return stat.S_IFMT(self.mode) == stat.S_IFLNK

    def source_name(self) -> str:
        """Return the source name that encodes these attributes."""
        file_type = stat.S_IFMT(self.mode)
        prefix = ""
        if file_type == 0:
            if self.encrypted:
                prefix += ENCRYPTED_PREFIX
            if self.perm & 0o077 == 0:
                prefix += PRIVATE_PREFIX
            if self.empty:
                prefix += EMPTY_PREFIX
            if self.perm & 0o111 != 0:
                prefix += EXECUTABLE_PREFIX
        elif file_type == stat.S_IFLNK:
            prefix = SYMLINK_PREFIX
        else:
            raise ValueError(f"{self!r}: unsupported type")
        source_name = prefix + _source_basename(self.name)
        if self.template:
            source_name += TEMPLATE_SUFFIX
        return source_name


def parse_file_attributes(source_name: str) -> FileAttributes:
    """Parse a source file name."""
    mode = 0o666
    empty = encrypted = False
    name, symlink = _strip_prefix(source_name, SYMLINK_PREFIX)
    if symlink:
        mode |= stat.S_IFLNK
    else:
        name, encrypted = _strip_prefix(name, ENCRYPTED_PREFIX)
        name, private = _strip_prefix(name, PRIVATE_PREFIX)
        name, empty = _strip_prefix(name, EMPTY_PREFIX)
        name, executable = _strip_prefix(name, EXECUTABLE_PREFIX)
        if executable:
            mode |= 0o111
        if private:
            mode &= 0o700
    name = _target_basename(name)
    template = name.endswith(TEMPLATE_SUFFIX)
    if template:
        name = name[: -len(TEMPLATE_SUFFIX)]
    return FileAttributes(
        name=name, mode=mode, empty=empty, encrypted=encrypted, template=template
    )


@dataclass(frozen=True)
class ScriptAttributes:
    """Attributes parsed from a source script name."""

    name: str
    once: bool = False
    template: bool = False

    def source_name(self) -> str:
        """Return the source name that encodes these attributes."""
        source_name = RUN_PREFIX
        if self.once:
            source_name += ONCE_PREFIX
        source_name += self.name
        if self.template:
            source_name += TEMPLATE_SUFFIX
        return source_name


def parse_script_attributes(source_name: str) -> ScriptAttributes:
    """Parse a source script name."""
    name, _ = _strip_prefix(source_name, RUN_PREFIX)
    name, once = _strip_prefix(name, ONCE_PREFIX)
    template = name.endswith(TEMPLATE_SUFFIX)
    if template:
        name = name[: -len(TEMPLATE_SUFFIX)]
    return ScriptAttributes(name=name, once=once, template=template)


@dataclass(frozen=True)
class ParsedSourceFilePath:
    """The parsed components of a source file path."""

    dir_attributes: list[DirAttributes] = field(default_factory=list)
    file_attributes: FileAttributes | None = None
    script_attributes: ScriptAttributes | None = None


def split_path_list(path: str) -> list[str]:
    """Split a path into its components, ignoring a leading separator."""
    if path.startswith(os.sep):
        path = path[len(os.sep):]
    return path.split(os.sep)


def parse_dir_name_components(components: list[str]) -> list[DirAttributes]:
    """Parse several directory name components."""
    return [parse_dir_attributes(component) for component in components]


def dir_names(dir_attributes: list[DirAttributes]) -> list[str]:
    """Return the target names of the given directory attributes."""
    return [attributes.name for attributes in dir_attributes]


def parse_source_file_path(path: str) -> ParsedSourceFilePath:
    """Parse a relative source file path into directory and file attributes."""
    *parents, source_name = split_path_list(path)
    dir_attributes = parse_dir_name_components(parents)
    if source_name.startswith(RUN_PREFIX):
        return ParsedSourceFilePath(
            dir_attributes=dir_attributes,
            script_attributes=parse_script_attributes(source_name),
        )
    return ParsedSourceFilePath(
        dir_attributes=dir_attributes,
        file_attributes=parse_file_attributes(source_name),
    )


def is_empty(data: bytes | None) -> bool:
    """Return whether data should be considered empty."""
    return not data or not data.strip()