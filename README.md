# chezmoi

A library for managing dotfiles on POSIX systems. A *source directory*
holds files whose names carry attributes, and a `TargetState` built from it
describes what a destination directory (usually your home directory) should
contain. Applying the target state brings the destination into line.

## Installation

```
pip install .
```

## Source names

Prefixes and suffixes in source names set the attributes of the target:

| In the source name | Meaning |
|--------------------|---------|
| `dot_`             | the target name starts with `.` |
| `private_`         | no group or other permissions |
| `executable_`      | files: add execute permission |
| `empty_`           | files: keep the file even when it is empty |
| `encrypted_`       | files: contents are decrypted with `gpg` |
| `exact_`           | directories: remove anything not in the source state |
| `symlink_`         | the file's contents are the link target |
| `run_`, `run_once_`| a script to run; `once_` scripts run once per content |
| `.tmpl` suffix     | contents are rendered as a template |

```python
from chezmoi.attributes import parse_file_attributes, parse_dir_attributes

fa = parse_file_attributes("private_executable_dot_foo.tmpl")
fa.name          # ".foo"
fa.mode          # 0o700
fa.template      # True
fa.source_name() # "private_executable_dot_foo.tmpl"

da = parse_dir_attributes("exact_private_dot_config")
da.name, da.exact, da.perm  # (".config", True, 0o700)
```

`parse_script_attributes` and `parse_source_file_path` in the same module
handle `run_` scripts and whole relative paths.

## Populating and applying a target state

```python
import sys

from chezmoi.entries import ApplyOptions
from chezmoi.mutator import FSMutator, LoggingMutator
from chezmoi.targetstate import TargetState

ts = TargetState(
    "/home/user", 0o022, "/home/user/.local/share/chezmoi",
    {"email": "user@example.com"}, {}, None,
)
ts.populate(None)

options = ApplyOptions(
    dest_dir=ts.dest_dir,
    ignore=ts.target_ignore.match,
    umask=0o022,
)
ts.apply(LoggingMutator(sys.stdout, FSMutator(), False), options)
```

While populating, names in the source directory that start with `.` are
skipped, except for these:

- `.chezmoiignore`: glob patterns of targets to ignore (a leading `!`
  excludes, `#` starts a comment); the file is rendered as a template first.
- `.chezmoiremove`: patterns of targets to delete when `ApplyOptions.remove`
  is set.
- `.chezmoitemplates`: a directory of templates that other templates can call
  with `{{ template "name" . }}`.
- `.chezmoiversion`: a semantic version, stored in `TargetState.min_version`.

File contents are read, decrypted and rendered lazily, on first use;
`TargetState.evaluate()` forces this for every entry that is not ignored.

`LoggingMutator` prints a shell-like line for every change and a unified
diff for text files it writes. To run `run_once_` scripts, give
`ApplyOptions.persistent_state` a `PersistentState`, for example a
`chezmoi.persistentstate.DatabasePersistentState`.

Other `TargetState` methods:

- `add(options, target_path, info, mutator)` adds a file, directory or symlink
  from the destination to the source directory, with `AddOptions` (`empty`,
  `encrypt`, `exact`, `follow`, `template`).
- `import_tar(tar, options, mutator)` adds the members of a `tarfile.TarFile`,
  with `ImportTAROptions` (`destination_dir`, `exact`, `strip_components`).
- `archive(tar, umask)` writes the target state to a `tarfile.TarFile`.
- `concrete_value(recursive)` returns a list of plain dicts describing the
  entries.
- `get(target)` returns the entry for a destination path, or `None`.

## Checking for changes

Wrap a `NullMutator` in an `AnyMutator` to find out whether applying would
change anything, without touching the filesystem:

```python
from chezmoi.mutator import AnyMutator, NullMutator

mutator = AnyMutator(NullMutator())
ts.apply(mutator, options)
mutator.mutated  # True if the destination differs
```

## Templates

`chezmoi.gotemplate.Template` renders a subset of the Go text/template
syntax: fields (`.name`, `.a.b`), variables, pipelines, parentheses,
`if`/`else if`/`else`, `range`, `with`, `template`, comments, `{{-`/`-}}`
trimming, and the functions `and`, `or`, `not`, `len`, `index`, `print`,
`printf`, `println`, `eq`, `ne`, `lt`, `le`, `gt`, `ge`, plus any functions
passed in. A missing map key, an unknown function or a syntax error raises
`TemplateError`. `define` and `block` are not supported.

## Other pieces

- `chezmoi.autotemplate.auto_template(contents, data)` turns file contents
  into a template by replacing whole-word occurrences of known values with
  template references, longest values first.
- `chezmoi.patternset.PatternSet` matches names against include and exclude
  glob patterns; `glob_match` does a single match.
- `chezmoi.persistentstate.DatabasePersistentState` stores values by bucket
  and key in an SQLite file, created only when a value is first set.
- `chezmoi.gpg.GPG` encrypts and decrypts data by running `gpg`.
- `chezmoi.privacy.is_private(path)` tells whether a path has no group or
  other permissions.
- `chezmoi.vcs.get_vcs_info("git")` or `("hg")` gives the arguments for
  init, clone, pull and version, and parses the version output.

## What this package does not do

It is a library only: there is no command-line program, no configuration
file handling, no self-upgrade and no fetching of repositories. `chezmoi.vcs`
only supplies argument lists; it does not run `git` or `hg`. Only POSIX
permissions are used to decide whether a path is private.

## Running the tests

```
pip install ".[test]"
pytest
```