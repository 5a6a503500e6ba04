import os
import stat

import pytest

from chezmoi.attributes import (
    DirAttributes,
    FileAttributes,
    ParsedSourceFilePath,
    ScriptAttributes,
    dir_names,
    is_empty,
    parse_dir_attributes,
    parse_dir_name_components,
    parse_file_attributes,
    parse_script_attributes,
    parse_source_file_path,
    split_path_list,
)

DIR_CASES = [
    ("foo", DirAttributes(name="foo", perm=0o777)),
    ("dot_foo", DirAttributes(name=".foo", perm=0o777)),
    ("private_foo", DirAttributes(name="foo", perm=0o700)),
    ("exact_foo", DirAttributes(name="foo", exact=True, perm=0o777)),
    ("private_dot_foo", DirAttributes(name=".foo", perm=0o700)),
    ("exact_private_dot_foo", DirAttributes(name=".foo", exact=True, perm=0o700)),
]


@pytest.mark.parametrize("source_name,attributes", DIR_CASES)
def test_dir_attributes(source_name, attributes):
    assert parse_dir_attributes(source_name) == attributes
    assert attributes.source_name() == source_name


FILE_CASES = [
    ("foo", FileAttributes(name="foo", mode=0o666)),
    ("dot_foo", FileAttributes(name=".foo", mode=0o666)),
    ("private_foo", FileAttributes(name="foo", mode=0o600)),
    ("private_dot_foo", FileAttributes(name=".foo", mode=0o600)),
    ("empty_foo", FileAttributes(name="foo", mode=0o666, empty=True)),
    ("executable_foo", FileAttributes(name="foo", mode=0o777)),
    ("foo.tmpl", FileAttributes(name="foo", mode=0o666, template=True)),
    (
        "private_executable_dot_foo.tmpl",
        FileAttributes(name=".foo", mode=0o700, template=True),
    ),
    ("symlink_foo", FileAttributes(name="foo", mode=stat.S_IFLNK | 0o666)),
    ("symlink_dot_foo", FileAttributes(name=".foo", mode=stat.S_IFLNK | 0o666)),
    (
        "symlink_foo.tmpl",
        FileAttributes(name="foo", mode=stat.S_IFLNK | 0o666, template=True),
    ),
    (
        "encrypted_private_dot_secret_file",
        FileAttributes(name=".secret_file", mode=0o600, encrypted=True),
    ),
]


@pytest.mark.parametrize("source_name,attributes", FILE_CASES)
def test_file_attributes(source_name, attributes):
    assert parse_file_attributes(source_name) == attributes
    assert attributes.source_name() == source_name


def test_file_attributes_symlink_and_perm():
    attributes = parse_file_attributes("symlink_foo")
    assert attributes.is_symlink() is True
    assert attributes.perm == 0o666
    assert parse_file_attributes("private_foo").is_symlink() is False


def test_file_attributes_unsupported_type():
    with pytest.raises(ValueError):
        FileAttributes(name="foo", mode=stat.S_IFDIR | 0o755).source_name()


SCRIPT_CASES = [
    ("run_foo", ScriptAttributes(name="foo")),
    ("run_once_foo", ScriptAttributes(name="foo", once=True)),
    ("run_foo.tmpl", ScriptAttributes(name="foo", template=True)),
    ("run_once_100_miauw.sh", ScriptAttributes(name="100_miauw.sh", once=True)),
]


@pytest.mark.parametrize("source_name,attributes", SCRIPT_CASES)
def test_script_attributes(source_name, attributes):
    assert parse_script_attributes(source_name) == attributes
    assert attributes.source_name() == source_name


def test_split_path_list():
    path = os.sep + os.path.join("a", "b", "c")
    assert split_path_list(path) == ["a", "b", "c"]
    assert split_path_list("foo") == ["foo"]


def test_parse_dir_name_components_and_dir_names():
    das = parse_dir_name_components(["exact_dir", "private_dot_foo"])
    assert das == [
        DirAttributes(name="dir", exact=True, perm=0o777),
        DirAttributes(name=".foo", perm=0o700),
    ]
    assert dir_names(das) == ["dir", ".foo"]


def test_parse_source_file_path_file():
    parsed = parse_source_file_path(os.path.join("private_dot_foo", "dot_bar.tmpl"))
    assert parsed == ParsedSourceFilePath(
        dir_attributes=[DirAttributes(name=".foo", perm=0o700)],
        file_attributes=FileAttributes(name=".bar", mode=0o666, template=True),
    )


def test_parse_source_file_path_script():
    parsed = parse_source_file_path("run_once_true")
    assert parsed.dir_attributes == []
    assert parsed.file_attributes is None
    assert parsed.script_attributes == ScriptAttributes(name="true", once=True)


@pytest.mark.parametrize(
    "data,expected",
    [(b"", True), (None, True), (b" \n\t", True), (b"a", False), (b" a ", False)],
)
def test_is_empty(data, expected):
    assert is_empty(data) is expected