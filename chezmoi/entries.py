"""Entries of the target state: directories, files, scripts and symlinks."""

from __future__ import annotations

import abc
import copy
import hashlib
import io
import json
import os
import stat
import subprocess
import sys
import tarfile
import tempfile
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, TextIO

from chezmoi.attributes import is_empty
from chezmoi.mutator import Mutator
from chezmoi.persistentstate import PersistentState


def _never(_name: str) -> bool:
    return False


@dataclass
class ApplyOptions:
    """Options that affect applying entries."""

    dest_dir: str = ""
    dry_run: bool = False
    ignore: Callable[[str], bool] = _never
    persistent_state: PersistentState | None = None
    remove: bool = False
    script_state_bucket: bytes = b"script"
    stdout: TextIO | None = None
    umask: int = 0
    verbose: bool = False


class _Lazy:
    """A value computed on first use; an error is remembered and re-raised."""

    def __init__(self, value: Any, evaluate: Callable[[], Any] | None) -> None:
        self._value = value
        self._evaluate = evaluate
        self._error: BaseException | None = None

    def get(self) -> Any:
        if self._evaluate is not None:
            evaluate, self._evaluate = self._evaluate, None
            try:
                self._value = evaluate()
            except Exception as exc:
                self._error = exc
        if self._error is not None:
            raise self._error
        return self._value


def _lstat(path: str) -> os.stat_result | None:
    try:
        return os.lstat(path)
    except FileNotFoundError:
        return None


class Entry(abc.ABC):
    """A directory, file, script or symlink in the target state."""

    source_name: str
    target_name: str

    @abc.abstractmethod
    def apply(self, mutator: Mutator, options: ApplyOptions) -> None:
        """Make the destination match this entry."""

    @abc.abstractmethod
    def concrete_value(self, dest_dir, ignore, source_dir, umask, recursive) -> dict | None:
        """Return a serializable description, or None if ignored."""

    @abc.abstractmethod
    def evaluate(self, ignore: Callable[[str], bool]) -> None:
        """Evaluate lazily computed values."""

    @abc.abstractmethod
    def archive(self, tar: tarfile.TarFile, ignore, header_template: tarfile.TarInfo, umask: int) -> None:
        """Write this entry to tar."""


def _header(template: tarfile.TarInfo, name: str, type_: bytes, mode: int) -> tarfile.TarInfo:
    header = copy.copy(template)
    header.name = name
    header.type = type_
    header.mode = mode
    header.size = 0
    return header


class Dir(Entry):
    """The target state of a directory."""

    def __init__(self, source_name: str, target_name: str, exact: bool = False,
                 perm: int = 0o777, entries: dict[str, Entry] | None = None) -> None:
        self.source_name = source_name
        self.target_name = target_name
        self.exact = exact
        self.perm = perm
        self.entries: dict[str, Entry] = {} if entries is None else entries

    def __eq__(self, other):
        if not isinstance(other, Dir):
            return NotImplemented
        return (self.source_name, self.target_name, self.exact, self.perm, self.entries) == (
            other.source_name, other.target_name, other.exact, other.perm, other.entries)

    def __repr__(self):
        return f"Dir({self.source_name!r}, {self.target_name!r}, exact={self.exact}, perm={self.perm:o}, entries={self.entries!r})"

    def private(self) -> bool:
        """Return whether the directory is private."""
        return self.perm & 0o077 == 0

    def apply(self, mutator, options):
        if options.ignore(self.target_name):
            return
        target_path = os.path.join(options.dest_dir, self.target_name)
        perm = self.perm & ~options.umask
        info = _lstat(target_path)
        if info is None:
            mutator.mkdir(target_path, perm)
        elif stat.S_ISDIR(info.st_mode):
            if stat.S_IMODE(info.st_mode) & 0o777 != perm:
                mutator.chmod(target_path, perm)
        else:
            mutator.remove_all(target_path)
            mutator.mkdir(target_path, perm)
        for name in sorted(self.entries):
            self.entries[name].apply(mutator, options)
        if self.exact:
            for name in sorted(os.listdir(target_path)):
                if name in self.entries:
                    continue
                if options.ignore(os.path.join(self.target_name, name)):
                    continue
                mutator.remove_all(os.path.join(target_path, name))

    def concrete_value(self, dest_dir, ignore, source_dir, umask, recursive):
        if ignore(self.target_name):
            return None
        entries = []
        if recursive:
            for name in sorted(self.entries):
                value = self.entries[name].concrete_value(dest_dir, ignore, source_dir, umask, recursive)
                if value is not None:
                    entries.append(value)
        return {
            "type": "dir",
            "sourcePath": os.path.join(source_dir, self.source_name),
            "targetPath": os.path.join(dest_dir, self.target_name),
            "exact": self.exact,
            "perm": self.perm & ~umask,
            "entries": entries,
        }

    def evaluate(self, ignore):
        if ignore(self.target_name):
            return
        for name in sorted(self.entries):
            self.entries[name].evaluate(ignore)

    def archive(self, tar, ignore, header_template, umask):
        if ignore(self.target_name):
            return
        tar.addfile(_header(header_template, self.target_name, tarfile.DIRTYPE, self.perm & ~umask))
        for name in sorted(self.entries):
            self.entries[name].archive(tar, ignore, header_template, umask)


class File(Entry):
    """The target state of a regular file."""

    def __init__(self, source_name: str, target_name: str, *, empty: bool = False,
                 encrypted: bool = False, perm: int = 0o666, template: bool = False,
                 contents: bytes = b"",
                 evaluate_contents: Callable[[], bytes] | None = None) -> None:
        self.source_name = source_name
        self.target_name = target_name
        self.empty = empty
        self.encrypted = encrypted
        self.perm = perm
        self.template = template
        self._contents = _Lazy(contents, evaluate_contents)

    def __eq__(self, other):
        if not isinstance(other, File):
            return NotImplemented
        return (self.source_name, self.target_name, self.empty, self.encrypted, self.perm,
                self.template, self.contents()) == (
            other.source_name, other.target_name, other.empty, other.encrypted, other.perm,
            other.template, other.contents())

    def __repr__(self):
        return f"File({self.source_name!r}, {self.target_name!r}, perm={self.perm:o})"

    def contents(self) -> bytes:
        """Return the file's contents, evaluating them on first use."""
        return self._contents.get()

    def executable(self) -> bool:
        """Return whether the file is executable."""
        return self.perm & 0o111 != 0

    def private(self) -> bool:
        """Return whether the file is private."""
        return self.perm & 0o077 == 0

    def apply(self, mutator, options):
        if options.ignore(self.target_name):
            return
        contents = self.contents()
        target_path = os.path.join(options.dest_dir, self.target_name)
        perm = self.perm & ~options.umask
        info = _lstat(target_path)
        curr_data = None
        if info is not None and stat.S_ISREG(info.st_mode):
            if is_empty(contents) and not self.empty:
                mutator.remove_all(target_path)
                return
            with open(target_path, "rb") as f:
                curr_data = f.read()
            if curr_data == contents:
                if stat.S_IMODE(info.st_mode) & 0o777 != perm:
                    mutator.chmod(target_path, perm)
                return
        elif info is not None:
            mutator.remove_all(target_path)
        if is_empty(contents) and not self.empty:
            return
        mutator.write_file(target_path, contents, perm, curr_data)

    def concrete_value(self, dest_dir, ignore, source_dir, umask, recursive):
        if ignore(self.target_name):
            return None
        return {
            "type": "file",
            "sourcePath": os.path.join(source_dir, self.source_name),
            "targetPath": os.path.join(dest_dir, self.target_name),
            "empty": self.empty,
            "encrypted": self.encrypted,
            "perm": self.perm & ~umask,
            "template": self.template,
            "contents": self.contents().decode("utf-8", "replace"),
        }

    def evaluate(self, ignore):
        if not ignore(self.target_name):
            self.contents()

    def archive(self, tar, ignore, header_template, umask):
        if ignore(self.target_name):
            return
        contents = self.contents()
        if not contents and not self.empty:
            return
        header = _header(header_template, self.target_name, tarfile.REGTYPE, self.perm & ~umask)
        header.size = len(contents)
        tar.addfile(header, io.BytesIO(contents))


class Script(Entry):
    """A script to run."""

    def __init__(self, source_name: str, target_name: str, *, once: bool = False,
                 template: bool = False, contents: bytes = b"",
                 evaluate_contents: Callable[[], bytes] | None = None) -> None:
        self.source_name = source_name
        self.target_name = target_name
        self.once = once
        self.template = template
        self._contents = _Lazy(contents, evaluate_contents)

    def __eq__(self, other):
        if not isinstance(other, Script):
            return NotImplemented
        return (self.source_name, self.target_name, self.once, self.template, self.contents()) == (
            other.source_name, other.target_name, other.once, other.template, other.contents())

    def __repr__(self):
        return f"Script({self.source_name!r}, {self.target_name!r}, once={self.once})"

    def contents(self) -> bytes:
        """Return the script's contents, evaluating them on first use."""
        return self._contents.get()

    def apply(self, mutator, options):
        if options.ignore(self.target_name):
            return
        contents = self.contents()
        if not contents.strip():
            return
        key = b""
        if self.once:
            digest = hashlib.sha256(contents).hexdigest()
            key = f"{self.target_name}:{digest}".encode()
            if options.persistent_state.get(options.script_state_bucket, key) is not None:
                return
        if options.verbose:
            (options.stdout or sys.stdout).write(contents.decode("utf-8", "replace"))
        if options.dry_run:
            return
        fd, path = tempfile.mkstemp(suffix="." + os.path.basename(self.target_name))
        try:
            os.chmod(path, 0o700)
            with os.fdopen(fd, "wb") as f:
                f.write(contents)
            cwd = os.path.join(options.dest_dir, os.path.dirname(self.target_name))
            subprocess.run([path], cwd=cwd, check=True)
        finally:
            try:
                os.remove(path)
            except FileNotFoundError:
                pass
        if self.once:
            state = {
                "name": self.source_name,
                "executedAt": datetime.now(timezone.utc).isoformat(),
            }
            options.persistent_state.set(
                options.script_state_bucket, key, json.dumps(state).encode()
            )

    def concrete_value(self, dest_dir, ignore, source_dir, umask, recursive):
        if ignore(self.target_name):
            return None
        return {
            "type": "script",
            "sourcePath": os.path.join(source_dir, self.source_name),
            "targetPath": os.path.join(dest_dir, self.target_name),
            "once": self.once,
            "template": self.template,
            "contents": self.contents().decode("utf-8", "replace"),
        }

    def evaluate(self, ignore):
        if not ignore(self.target_name):
            self.contents()

    def archive(self, tar, ignore, header_template, umask):
        if ignore(self.target_name):
            return
        contents = self.contents()
        header = _header(header_template, self.target_name, tarfile.REGTYPE, 0o777 & ~umask)
        header.size = len(contents)
        tar.addfile(header, io.BytesIO(contents))


class Symlink(Entry):
    """The target state of a symlink."""

    def __init__(self, source_name: str, target_name: str, *, template: bool = False,
                 linkname: str = "",
                 evaluate_linkname: Callable[[], str] | None = None) -> None:
        self.source_name = source_name
        self.target_name = target_name
        self.template = template
        self._linkname = _Lazy(linkname, evaluate_linkname)

    def __eq__(self, other):
        if not isinstance(other, Symlink):
            return NotImplemented
        return (self.source_name, self.target_name, self.template, self.linkname()) == (
            other.source_name, other.target_name, other.template, other.linkname())

    def __repr__(self):
        return f"Symlink({self.source_name!r}, {self.target_name!r})"

    def linkname(self) -> str:
        """Return the link target, evaluating it on first use."""
        return self._linkname.get()

    def apply(self, mutator, options):
        if options.ignore(self.target_name):
            return
        target = self.linkname()
        target_path = os.path.join(options.dest_dir, self.target_name)
        info = _lstat(target_path)
        if info is not None and stat.S_ISLNK(info.st_mode):
            if os.readlink(target_path) == target:
                return
        mutator.write_symlink(target, target_path)

    def concrete_value(self, dest_dir, ignore, source_dir, umask, recursive):
        if ignore(self.target_name):
            return None
        return {
            "type": "symlink",
            "sourcePath": os.path.join(source_dir, self.source_name),
            "targetPath": os.path.join(dest_dir, self.target_name),
            "template": self.template,
            "linkname": self.linkname(),
        }

    def evaluate(self, ignore):
        if not ignore(self.target_name):
            self.linkname()

    def archive(self, tar, ignore, header_template, umask):
        if ignore(self.target_name):
            return
        header = _header(header_template, self.target_name, tarfile.SYMTYPE, header_template.mode)
        header.linkname = self.linkname()
        tar.addfile(header)