"""The target state: everything that the destination directory should contain."""

from __future__ import annotations

import errno
import os
import re
import stat
import tarfile
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

import semver

from chezmoi.attributes import (
    DirAttributes,
    FileAttributes,
    dir_names,
    parse_dir_name_components,
    parse_source_file_path,
    split_path_list,
)
from chezmoi.autotemplate import auto_template
from chezmoi.entries import ApplyOptions, Dir, Entry, File, Script, Symlink
from chezmoi.gotemplate import Template
from chezmoi.gpg import GPG
from chezmoi.mutator import Mutator
from chezmoi.patternset import PatternSet, glob_match
from chezmoi.privacy import is_private

IGNORE_NAME = ".chezmoiignore"
REMOVE_NAME = ".chezmoiremove"
TEMPLATES_DIR_NAME = ".chezmoitemplates"
VERSION_NAME = ".chezmoiversion"

_GLOB_MAGIC = re.compile(r"[*?\[\\]")


@dataclass
class AddOptions:
    """Options for TargetState.add."""

    empty: bool = False
    encrypt: bool = False
    exact: bool = False
    follow: bool = False
    template: bool = False


@dataclass
class ImportTAROptions:
    """Options for TargetState.import_tar."""

    destination_dir: str = ""
    exact: bool = False
    strip_components: int = 0


@dataclass
class PopulateOptions:
    """Options for TargetState.populate."""

    execute_templates: bool = True


def _contains(path: str, directory: str) -> bool:
    path = os.path.join(
        os.path.realpath(os.path.dirname(os.path.abspath(path))),
        os.path.basename(os.path.abspath(path)),
    )
    directory = os.path.realpath(directory)
    return path == directory or path.startswith(directory.rstrip(os.sep) + os.sep)


def _glob(pattern: str) -> list[str]:
    """Expand a glob pattern; unlike the glob module, wildcards match dot files."""
    if not _GLOB_MAGIC.search(pattern):
        return [pattern] if os.path.lexists(pattern) else []
    directory, base = os.path.split(pattern)
    directory = directory or "."
    dirs = _glob(directory) if _GLOB_MAGIC.search(directory) else [directory]
    matches = []
    for d in dirs:
        try:
            names = sorted(os.listdir(d))
        except OSError:
            continue
        matches.extend(os.path.join(d, name) for name in names if glob_match(base, name))
    return matches


def _join(components: list[str]) -> str:
    return os.path.join(*components) if components else ""


def _read(path: str) -> bytes:
    with open(path, "rb") as f:
        return f.read()


def _tar_header_template() -> tarfile.TarInfo:
    import grp
    import pwd

    uid = os.getuid()
    try:
        pw = pwd.getpwuid(uid)
        uname, gid = pw.pw_name, pw.pw_gid
    except KeyError:
        uname, gid = "", os.getgid()
    try:
        gname = grp.getgrgid(gid).gr_name
    except KeyError:
        gname = ""
    header = tarfile.TarInfo()
    header.uid = uid
    header.gid = gid
    header.uname = uname
    header.gname = gname
    header.mtime = int(time.time())
    header.mode = 0
    return header


class TargetState:
    """The root of the target state."""

    def __init__(
        self,
        dest_dir: str,
        umask: int,
        source_dir: str,
        data: Mapping[str, Any] | None = None,
        template_funcs: Mapping[str, Callable] | None = None,
        gpg: GPG | None = None,
    ) -> None:
        self.dest_dir = dest_dir
        self.target_ignore = PatternSet()
        self.target_remove = PatternSet()
        self.umask = umask
        self.source_dir = source_dir
        self.data = data
        self.template_funcs = template_funcs
        self.templates: dict[str, Template] = {}
        self.gpg = gpg
        self.entries: dict[str, Entry] = {}
        self.min_version: semver.Version | None = None

    def add(
        self,
        options: AddOptions,
        target_path: str,
        info: os.stat_result | None,
        mutator: Mutator,
    ) -> None:
        """Add target_path from the destination to the target and source states."""
        if not _contains(target_path, self.dest_dir):
            raise ValueError(f"{target_path}: outside target directory")
        target_name = os.path.relpath(target_path, self.dest_dir)
        if info is None:
            info = os.stat(target_path) if options.follow else os.lstat(target_path)
        elif options.follow and stat.S_ISLNK(info.st_mode):
            info = os.stat(target_path)

        parent_source_name = ""
        entries = self.entries
        parent_name = os.path.dirname(target_name)
        if parent_name:
            try:
                parent = self._find_entry(parent_name)
            except FileNotFoundError:
                parent = None
            if parent is None:
                self.add(options, os.path.join(self.dest_dir, parent_name), None, mutator)
                parent = self._find_entry(parent_name)
            if not isinstance(parent, Dir):
                raise NotADirectoryError(f"{parent_name}: not a directory")
            parent_source_name = parent.source_name
            entries = parent.entries

        mode = info.st_mode
        if stat.S_ISDIR(mode):
            perm = stat.S_IMODE(mode) & 0o777
            empty = not os.listdir(target_path)
            if is_private(target_path):
                perm &= ~0o077
            self._add_dir(target_name, entries, parent_source_name, options.exact, perm, empty, mutator)
        elif stat.S_ISREG(mode):
            if info.st_size == 0 and not options.empty:
                return
            contents = _read(target_path)
            if options.template:
                contents = auto_template(contents, self.data or {})
            if options.encrypt:
                if self.gpg is None:
                    raise ValueError(f"{target_path}: no encryption configured")
                contents = self.gpg.encrypt(target_path, contents)
            perm = stat.S_IMODE(mode) & 0o777
            if is_private(target_path):
                perm &= ~0o077
            self._add_file(
                target_name, entries, parent_source_name, info.st_size == 0, perm,
                options.encrypt, options.template, contents, mutator,
            )
        elif stat.S_ISLNK(mode):
            linkname = os.readlink(target_path)
            self._add_symlink(target_name, entries, parent_source_name, linkname, mutator)
        else:
            raise ValueError(f"{target_name}: not a regular file, directory, or symlink")

    def apply(self, mutator: Mutator, options: ApplyOptions) -> None:
        """Make the destination directory match the target state."""
        if options.remove:
            targets: set[str] = set()
            prefix = self.dest_dir + os.sep
            for include in self.target_remove.includes:
                for match in _glob(os.path.join(self.dest_dir, include)):
                    rel_path = match.removeprefix(prefix)
                    if self.target_ignore.match(rel_path):
                        continue
                    if not self.target_remove.match(rel_path):
                        continue
                    targets.add(match)
            # Children sort after their parents, so reversing removes them first.
            for target in sorted(targets, reverse=True):
                mutator.remove_all(target)
        for name in sorted(self.entries):
            self.entries[name].apply(mutator, options)

    def archive(self, tar: tarfile.TarFile, umask: int) -> None:
        """Write the target state to tar."""
        header_template = _tar_header_template()
        for name in sorted(self.entries):
            self.entries[name].archive(tar, self.target_ignore.match, header_template, umask)

    def concrete_value(self, recursive: bool) -> list[dict]:
        """Return a serializable description of the target state."""
        values = []
        for name in sorted(self.entries):
            value = self.entries[name].concrete_value(
                self.dest_dir, self.target_ignore.match, self.source_dir, self.umask, recursive
            )
            if value is not None:
                values.append(value)
        return values

    def evaluate(self) -> None:
        """Evaluate every entry."""
        for name in sorted(self.entries):
            self.entries[name].evaluate(self.target_ignore.match)

    def get(self, target: str) -> Entry | None:
        """Return the entry for target, or None if there is none."""
        if not _contains(target, self.dest_dir):
            raise ValueError(f"{target}: outside target directory")
        return self._find_entry(os.path.relpath(target, self.dest_dir))

    def import_tar(self, tar: tarfile.TarFile, options: ImportTAROptions, mutator: Mutator) -> None:
        """Import the members of a tar archive into the source state."""
        for member in tar:
            if member.isdir() or member.isreg() or member.issym():
                self._import_member(tar, member, options, mutator)
            elif member.type == tarfile.XGLTYPE:
                continue
            else:
                raise ValueError(
                    f"{member.name}: unsupported typeflag '{member.type.decode(errors='replace')}'"
                )

    def populate(self, options: PopulateOptions | None = None) -> None:
        """Walk the source directory and build the target state from it."""
        self._walk(self.source_dir, options)

    def execute_template_data(self, name: str, data: bytes) -> bytes:
        """Execute data as a template named name against the target state's data."""
        tmpl = Template(name, data.decode("utf-8", "surrogateescape"), self.template_funcs)
        output = tmpl.execute(self.data, self.templates)
        return output.encode("utf-8", "surrogateescape")

    def _walk(self, path: str, options: PopulateOptions | None) -> None:
        info = os.lstat(path)
        skip = self._populate_entry(path, info, options)
        if stat.S_ISDIR(info.st_mode) and not skip:
            for name in sorted(os.listdir(path)):
                self._walk(os.path.join(path, name), options)

    def _populate_entry(self, path: str, info: os.stat_result, options: PopulateOptions | None) -> bool:
        """Handle one path of the source directory; return True to skip a directory."""
        rel_path = os.path.relpath(path, self.source_dir)
        if rel_path == ".":
            return False
        name = os.path.basename(rel_path)
        is_dir = stat.S_ISDIR(info.st_mode)
        if name.startswith("."):
            if name in (IGNORE_NAME, REMOVE_NAME):
                dns = dir_names(parse_dir_name_components(split_path_list(rel_path)))
                ps = self.target_ignore if name == IGNORE_NAME else self.target_remove
                self._add_patterns(ps, path, _join(dns))
                return False
            if name == TEMPLATES_DIR_NAME:
                self._add_templates_dir(path)
                return True
            if name == VERSION_NAME:
                version = semver.Version.parse(_read(path).decode().strip())
                if self.min_version is None or self.min_version < version:
                    self.min_version = version
                return False
            return is_dir

        if is_dir:
            das = parse_dir_name_components(split_path_list(rel_path))
            dns = dir_names(das)
            entries = self._find_entries(dns[:-1])
            da = das[-1]
            entries[da.name] = Dir(rel_path, _join(dns), da.exact, da.perm)
            return False
        if not stat.S_ISREG(info.st_mode):
            raise ValueError(f"{path}: unsupported file type")

        psfp = parse_source_file_path(rel_path)
        dns = dir_names(psfp.dir_attributes)
        entries = self._find_entries(dns)
        fa, sa = psfp.file_attributes, psfp.script_attributes

        if sa is not None or (fa is not None and not fa.is_symlink()):
            evaluate: Callable[[], bytes] = lambda: _read(path)
            if fa is not None and fa.encrypted:
                read_ciphertext = evaluate

                def evaluate() -> bytes:
                    if self.gpg is None:
                        raise ValueError(f"{path}: no decryption configured")
                    return self.gpg.decrypt(path, read_ciphertext())

            if (fa is not None and fa.template) or (sa is not None and sa.template):
                if options is None or options.execute_templates:
                    read_template = evaluate

                    def evaluate() -> bytes:
                        return self.execute_template_data(path, read_template())

            if fa is not None:
                entries[fa.name] = File(
                    rel_path,
                    os.path.join(*dns, fa.name),
                    empty=fa.empty,
                    encrypted=fa.encrypted,
                    perm=fa.perm,
                    template=fa.template,
                    evaluate_contents=evaluate,
                )
            else:
                entries[sa.name] = Script(
                    rel_path,
                    os.path.join(*dns, sa.name),
                    once=sa.once,
                    template=sa.template,
                    evaluate_contents=evaluate,
                )
        elif fa is not None:
            if fa.template:
                def evaluate_linkname() -> str:
                    return self.execute_template_data(path, _read(path)).decode(
                        "utf-8", "surrogateescape"
                    )
            else:
                def evaluate_linkname() -> str:
                    return _read(path).decode("utf-8", "surrogateescape")

            entries[fa.name] = Symlink(
                rel_path,
                os.path.join(*dns, fa.name),
                template=fa.template,
                evaluate_linkname=evaluate_linkname,
            )
        else:
            raise ValueError(f"{path}: unsupported file type")
        return False

    def _add_dir(self, target_name, entries, parent_source_name, exact, perm, empty, mutator) -> None:
        name = os.path.basename(target_name)
        existing = entries.get(name)
        if existing is not None:
            if not isinstance(existing, Dir):
                raise ValueError(f"{target_name}: already added and not a directory")
            return
        source_name = DirAttributes(name=name, exact=exact, perm=perm).source_name()
        if parent_source_name:
            source_name = os.path.join(parent_source_name, source_name)
        directory = Dir(source_name, target_name, exact, perm)
        mutator.mkdir(os.path.join(self.source_dir, source_name), 0o777 & ~self.umask)
        # An empty directory gets a .keep file so that version control tracks it.
        if empty:
            mutator.write_file(
                os.path.join(self.source_dir, source_name, ".keep"), b"", 0o666 & ~self.umask, None
            )
        entries[name] = directory

    def _add_file(self, target_name, entries, parent_source_name, empty, perm,
                  encrypted, template, contents, mutator) -> None:
        name = os.path.basename(target_name)
        existing = entries.get(name)
        existing_contents = None
        if existing is not None:
            if not isinstance(existing, File):
                raise ValueError(f"{target_name}: already added and not a regular file")
            existing_contents = existing.contents()
        source_name = FileAttributes(
            name=name, mode=perm, empty=empty, encrypted=encrypted, template=template
        ).source_name()
        if parent_source_name:
            source_name = os.path.join(parent_source_name, source_name)
        file = File(
            source_name, target_name, empty=empty, encrypted=encrypted,
            perm=perm, template=template, contents=contents,
        )
        if existing is not None:
            if existing_contents == contents:
                if existing.source_name != source_name:
                    mutator.rename(
                        os.path.join(self.source_dir, existing.source_name),
                        os.path.join(self.source_dir, source_name),
                    )
                return
            mutator.remove_all(os.path.join(self.source_dir, existing.source_name))
        entries[name] = file
        mutator.write_file(
            os.path.join(self.source_dir, source_name), contents, 0o666 & ~self.umask, existing_contents
        )

    def _add_symlink(self, target_name, entries, parent_source_name, linkname, mutator) -> None:
        name = os.path.basename(target_name)
        existing = entries.get(name)
        existing_linkname = ""
        if existing is not None:
            if not isinstance(existing, Symlink):
                raise ValueError(f"{target_name}: already added and not a symlink")
            existing_linkname = existing.linkname()
        source_name = FileAttributes(name=name, mode=stat.S_IFLNK).source_name()
        if parent_source_name:
            source_name = os.path.join(parent_source_name, source_name)
        symlink = Symlink(source_name, target_name, linkname=linkname)
        if existing is not None:
            if existing_linkname == linkname:
                if existing.source_name != source_name:
                    mutator.rename(
                        os.path.join(self.source_dir, existing.source_name),
                        os.path.join(self.source_dir, source_name),
                    )
                return
            mutator.remove_all(os.path.join(self.source_dir, existing.source_name))
        entries[name] = symlink
        mutator.write_file(
            os.path.join(self.source_dir, source_name),
            linkname.encode("utf-8", "surrogateescape"),
            0o666 & ~self.umask,
            existing_linkname.encode("utf-8", "surrogateescape"),
        )

    def _add_patterns(self, ps: PatternSet, path: str, rel_path: str) -> None:
        data = self.execute_template_data(path, _read(path))
        directory = os.path.dirname(rel_path)
        for raw_line in data.decode("utf-8", "surrogateescape").split("\n"):
            text = raw_line.removesuffix("\r").split("#", 1)[0].strip()
            if not text:
                continue
            include = not text.startswith("!")
            if not include:
                text = text[1:]
            ps.add(os.path.join(directory, text), include)

    def _add_templates_dir(self, path: str) -> None:
        info = os.lstat(path)
        if stat.S_ISDIR(info.st_mode):
            for name in sorted(os.listdir(path)):
                self._add_templates_dir(os.path.join(path, name))
        elif stat.S_ISREG(info.st_mode):
            name = os.path.basename(path)
            self.templates[name] = Template(name, _read(path).decode("utf-8", "surrogateescape"))
        else:
            raise ValueError(f"unsupported file in {TEMPLATES_DIR_NAME}: {path}")

    def _find_entries(self, names: list[str]) -> dict[str, Entry]:
        entries = self.entries
        for depth, name in enumerate(names, start=1):
            entry = entries.get(name)
            if entry is None:
                raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), _join(names[:depth]))
            if not isinstance(entry, Dir):
                raise NotADirectoryError(f"{_join(names[:depth])}: not a directory")
            entries = entry.entries
        return entries

    def _find_entry(self, name: str) -> Entry | None:
        *parents, last = split_path_list(name)
        return self._find_entries(parents).get(last)

    def _import_member(self, tar, member, options, mutator) -> None:
        target_path = member.name
        if options.strip_components > 0:
            target_path = _join(target_path.split(os.sep)[options.strip_components:])
        base = options.destination_dir or self.dest_dir
        target_path = os.path.normpath(os.path.join(base, target_path))
        target_name = os.path.relpath(target_path, self.dest_dir)
        parent_source_name = ""
        entries = self.entries
        parent_name = os.path.dirname(target_name)
        if parent_name:
            parent = self._find_entry(parent_name)
            if not isinstance(parent, Dir):
                raise ValueError(f"{target_name}: parent is not a directory")
            parent_source_name = parent.source_name
            entries = parent.entries
        if member.isdir():
            self._add_dir(target_name, entries, parent_source_name, options.exact,
                          member.mode & 0o777, False, mutator)
        elif member.isreg():
            f = tar.extractfile(member)
            contents = f.read() if f is not None else b""
            self._add_file(target_name, entries, parent_source_name, member.size == 0,
                           member.mode & 0o777, False, False, contents, mutator)
        else:
            self._add_symlink(target_name, entries, parent_source_name, member.linkname, mutator)