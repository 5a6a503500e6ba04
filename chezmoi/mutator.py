"""Objects that make changes to the filesystem, or pretend to."""

from __future__ import annotations

import abc
import difflib
import os
import secrets
import shutil
import stat
import tempfile
from typing import TextIO

_SNIFF_LEN = 512

# Bytes that mark data as binary when content sniffing.
_BINARY_BYTES = frozenset(
    [*range(0x00, 0x09), 0x0B, *range(0x0E, 0x1B), *range(0x1C, 0x20)]
)

# Signatures made only of text bytes that nonetheless identify a binary format.
_BINARY_SIGNATURES = (
    b"%PDF-",
    b"%!PS-Adobe-",
    b"GIF87a",
    b"GIF89a",
    b"BM",
    b"ID3",
    b"wOFF",
    b"wOF2",
)

_TEXT_BOMS = (b"\xfe\xff", b"\xff\xfe", b"\xef\xbb\xbf")


def is_binary(data: bytes | None) -> bool:
    """Return whether data is non-empty and does not look like text."""
    if not data:
        return False
    head = bytes(data[:_SNIFF_LEN])
    if head.startswith(_TEXT_BOMS):
        return False
    if head.startswith(_BINARY_SIGNATURES):
        return True
    return any(b in _BINARY_BYTES for b in head)


class Mutator(abc.ABC):
    """Something that makes changes."""

    @abc.abstractmethod
    def chmod(self, name: str, mode: int) -> None:
        """Change the mode of name."""

    @abc.abstractmethod
    def mkdir(self, name: str, perm: int) -> None:
        """Create the directory name."""

    @abc.abstractmethod
    def remove_all(self, name: str) -> None:
        """Remove name and everything below it; a missing name is not an error."""

    @abc.abstractmethod
    def rename(self, oldpath: str, newpath: str) -> None:
        """Rename oldpath to newpath."""

    @abc.abstractmethod
    def stat(self, name: str) -> os.stat_result:
        """Return the status of name."""

    @abc.abstractmethod
    def write_file(
        self, name: str, data: bytes, perm: int, curr_data: bytes | None = None
    ) -> None:
        """Write data to name with permissions perm.

        curr_data is the current contents of name, if known.
        """

    @abc.abstractmethod
    def write_symlink(self, oldname: str, newname: str) -> None:
        """Make newname a symlink to oldname, replacing what is there."""


class NullMutator(Mutator):
    """A mutator that does nothing."""

    def chmod(self, name, mode):
        pass

    def mkdir(self, name, perm):
        pass

    def remove_all(self, name):
        pass

    def rename(self, oldpath, newpath):
        pass

    def stat(self, name):
        raise FileNotFoundError(os.strerror(2), name)

    def write_file(self, name, data, perm, curr_data=None):
        pass

    def write_symlink(self, oldname, newname):
        pass


class AnyMutator(Mutator):
    """Wraps another mutator and records whether any mutating method was called."""

    def __init__(self, mutator: Mutator) -> None:
        self._mutator = mutator
        self._mutated = False

    @property
    def mutated(self) -> bool:
        """Whether any mutating method has been called."""
        return self._mutated

    def chmod(self, name, mode):
        self._mutated = True
        self._mutator.chmod(name, mode)

    def mkdir(self, name, perm):
        self._mutated = True
        self._mutator.mkdir(name, perm)

    def remove_all(self, name):
        self._mutated = True
        self._mutator.remove_all(name)

    def rename(self, oldpath, newpath):
        self._mutated = True
        self._mutator.rename(oldpath, newpath)

    def stat(self, name):
        return self._mutator.stat(name)

    def write_file(self, name, data, perm, curr_data=None):
        self._mutated = True
        self._mutator.write_file(name, data, perm, curr_data)

    def write_symlink(self, oldname, newname):
        self._mutated = True
        self._mutator.write_symlink(oldname, newname)


class FSMutator(Mutator):
    """Makes changes to the real filesystem, replacing files atomically."""

    def chmod(self, name, mode):
        os.chmod(name, mode)

    def mkdir(self, name, perm):
        os.mkdir(name, perm)

    def remove_all(self, name):
        try:
            info = os.lstat(name)
        except FileNotFoundError:
            return
        if stat.S_ISDIR(info.st_mode):
            shutil.rmtree(name)
        else:
            os.remove(name)

    def rename(self, oldpath, newpath):
        os.rename(oldpath, newpath)

    def stat(self, name):
        return os.stat(name)

    def write_file(self, name, data, perm, curr_data=None):
        directory = os.path.dirname(name) or "."
        fd, temp_name = tempfile.mkstemp(
            prefix="." + os.path.basename(name) + ".", dir=directory
        )
        try:
            with os.fdopen(fd, "wb") as f:
                os.chmod(temp_name, perm)
                f.write(data or b"")
            os.replace(temp_name, name)
        except BaseException:
            try:
                os.remove(temp_name)
            except FileNotFoundError:
                pass
            raise

    def write_symlink(self, oldname, newname):
        directory = os.path.dirname(newname) or "."
        while True:
            temp_name = os.path.join(
                directory, f".{os.path.basename(newname)}.{secrets.token_hex(8)}"
            )
            try:
                os.symlink(oldname, temp_name)
                break
            except FileExistsError:
                continue
        try:
            os.replace(temp_name, newname)
        except BaseException:
            try:
                os.remove(temp_name)
            except FileNotFoundError:
                pass
            raise


_RESET = "\x1b[0m"
_COLORS = (
    ("---", "\x1b[1m"),
    ("+++", "\x1b[1m"),
    ("@@", "\x1b[36m"),
    ("-", "\x1b[31m"),
    ("+", "\x1b[32m"),
)


def _colorize(line: str) -> str:
    for prefix, color in _COLORS:
        if line.startswith(prefix):
            return color + line.rstrip("\n") + _RESET + "\n"
    return line


class LoggingMutator(Mutator):
    """Wraps another mutator and logs every action it executes and any errors."""

    def __init__(self, stream: TextIO, mutator: Mutator, colored: bool = False) -> None:
        self._stream = stream
        self._mutator = mutator
        self._colored = colored

    def _run(self, action: str, func, *args) -> None:
        try:
            func(*args)
        except Exception as exc:
            self._stream.write(f"{action}: {exc}\n")
            raise
        self._stream.write(action + "\n")

    def chmod(self, name, mode):
        self._run(f"chmod {mode:o} {name}", self._mutator.chmod, name, mode)

    def mkdir(self, name, perm):
        self._run(f"mkdir -m {perm:o} {name}", self._mutator.mkdir, name, perm)

    def remove_all(self, name):
        self._run(f"rm -rf {name}", self._mutator.remove_all, name)

    def rename(self, oldpath, newpath):
        self._run(f"mv {oldpath} {newpath}", self._mutator.rename, oldpath, newpath)

    def stat(self, name):
        return self._mutator.stat(name)

    def write_file(self, name, data, perm, curr_data=None):
        self._run(
            f"install -m {perm:o} /dev/null {name}",
            self._mutator.write_file,
            name,
            data,
            perm,
            curr_data,
        )
        if not is_binary(curr_data) and not is_binary(data):
            self._write_diff(name, curr_data or b"", data or b"")

    def write_symlink(self, oldname, newname):
        self._run(
            f"ln -sf {oldname} {newname}", self._mutator.write_symlink, oldname, newname
        )

    def _write_diff(self, name: str, old: bytes, new: bytes) -> None:
        a = old.decode("utf-8", "replace").splitlines(keepends=True)
        b = new.decode("utf-8", "replace").splitlines(keepends=True)
        for line in difflib.unified_diff(a, b, fromfile=name, tofile=name, n=3, lineterm="\n"):
            if not line.endswith("\n"):
                line += "\n"
            self._stream.write(_colorize(line) if self._colored else line)