import pytest

from chezmoi.patternset import BadPatternError, PatternSet, glob_match


def make_pattern_set(patterns):
    ps = PatternSet()
    for pattern, include in patterns.items():
        ps.add(pattern, include)
    return ps


PATTERN_SET_CASES = [
    ("empty", {}, {"foo": False}),
    ("exact", {"foo": True}, {"foo": True, "bar": False}),
    ("wildcard", {"b*": True}, {"foo": False, "bar": True, "baz": True}),
    (
        "exclude",
        {"b*": True, "baz": False},
        {"foo": False, "bar": True, "baz": False},
    ),
]


@pytest.mark.parametrize(
    "patterns,expected",
    [case[1:] for case in PATTERN_SET_CASES],
    ids=[case[0] for case in PATTERN_SET_CASES],
)
def test_pattern_set(patterns, expected):
    ps = make_pattern_set(patterns)
    for name, expect_match in expected.items():
        assert ps.match(name) is expect_match


def test_add_records_includes_and_excludes():
    ps = make_pattern_set({"f*": True, "g": False})
    assert ps == PatternSet(includes={"f*"}, excludes={"g"})


def test_add_drops_bad_pattern():
    ps = PatternSet()
    ps.add("[", True)
    assert ps.includes == set()
    assert ps.match("[") is False


@pytest.mark.parametrize(
    "pattern,name,expected",
    [
        ("*", "abc", True),
        ("*", "a/b", False),
        ("a/*", "a/b", True),
        ("?", "a", True),
        ("?", "/", False),
        ("a?c", "abc", True),
        ("[a-c]", "b", True),
        ("[a-c]", "d", False),
        ("[^a-c]", "d", True),
        ("[^a-c]", "b", False),
        ("[\\]]", "]", True),
        ("\\*", "*", True),
        ("\\*", "a", False),
        ("dir/foo", "dir/foo", True),
        ("b*", "", False),
    ],
)
def test_glob_match(pattern, name, expected):
    assert glob_match(pattern, name) is expected


@pytest.mark.parametrize("pattern", ["[", "\\", "[]a]", "[-a]", "[a-", "[a"])
def test_glob_match_bad_pattern(pattern):
    with pytest.raises(BadPatternError):
        glob_match(pattern, "a")