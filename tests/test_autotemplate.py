import pytest

from chezmoi.autotemplate import (
    TemplateVariable,
    auto_template,
    extract_variables,
    in_word,
)

AUTO_TEMPLATE_CASES = [
    (
        "simple",
        "email = user@example.com\n",
        {"email": "user@example.com"},
        "email = {{ .email }}\n",
    ),
    (
        "longest_first",
        "name = John Smith\nfirstName = John\n",
        {"name": "John Smith", "firstName": "John"},
        "name = {{ .name }}\nfirstName = {{ .firstName }}\n",
    ),
    (
        "alphabetical_first",
        "name = John Smith\n",
        {"alpha": "John Smith", "beta": "John Smith", "gamma": "John Smith"},
        "name = {{ .alpha }}\n",
    ),
    (
        "nested_values",
        "email = user@example.com\n",
        {"personal": {"email": "user@example.com"}},
        "email = {{ .personal.email }}\n",
    ),
    (
        "only_replace_words",
        "darwinian evolution",
        {"os": "darwin"},
        "darwinian evolution",
    ),
    ("longest_match_first", "/home/user", {"homedir": "/home/user"}, "{{ .homedir }}"),
    (
        "longest_match_first_prefix",
        "HOME=/home/user",
        {"homedir": "/home/user"},
        "HOME={{ .homedir }}",
    ),
    (
        "longest_match_first_suffix",
        "/home/user/something",
        {"homedir": "/home/user"},
        "{{ .homedir }}/something",
    ),
    (
        "longest_match_first_prefix_and_suffix",
        "HOME=/home/user/something",
        {"homedir": "/home/user"},
        "HOME={{ .homedir }}/something",
    ),
    (
        "words_only",
        "aaa aa a aa aaa aa a aa aaa",
        {"alpha": "a"},
        "aaa aa {{ .alpha }} aa aaa aa {{ .alpha }} aa aaa",
    ),
    (
        "words_only_2",
        "aaa aa a aa aaa aa a aa aaa",
        {"alpha": "aa"},
        "aaa {{ .alpha }} a {{ .alpha }} aaa {{ .alpha }} a {{ .alpha }} aaa",
    ),
    (
        "words_only_3",
        "aaa aa a aa aaa aa a aa aaa",
        {"alpha": "aaa"},
        "{{ .alpha }} aa a aa {{ .alpha }} aa a aa {{ .alpha }}",
    ),
    ("skip_empty", "a", {"empty": ""}, "a"),
]


@pytest.mark.parametrize(
    "contents,data,expected",
    [case[1:] for case in AUTO_TEMPLATE_CASES],
    ids=[case[0] for case in AUTO_TEMPLATE_CASES],
)
def test_auto_template(contents, data, expected):
    assert auto_template(contents.encode(), data) == expected.encode()


IN_WORD_CASES = [
    ("", 0, False),
    ("a", 0, False),
    ("a", 1, False),
    ("ab", 0, False),
    ("ab", 1, True),
    ("ab", 2, False),
    ("abc", 0, False),
    ("abc", 1, True),
    ("abc", 2, True),
    ("abc", 3, False),
    (" abc ", 0, False),
    (" abc ", 1, False),
    (" abc ", 2, True),
    (" abc ", 3, True),
    (" abc ", 4, False),
    (" abc ", 5, False),
    ("/home/user", 0, False),
    ("/home/user", 1, False),
    ("/home/user", 2, True),
    ("/home/user", 3, True),
    ("/home/user", 4, True),
    ("/home/user", 5, False),
    ("/home/user", 6, False),
    ("/home/user", 7, True),
    ("/home/user", 8, True),
    ("/home/user", 9, True),
    ("/home/user", 10, False),
]


@pytest.mark.parametrize("s,i,expected", IN_WORD_CASES)
def test_in_word(s, i, expected):
    assert in_word(s, i) is expected


def test_extract_variables_nested_and_non_strings():
    data = {"a": "1", "b": {"c": "2", "d": {"e": "3"}}, "n": 42, "l": ["x"]}
    variables = extract_variables(data)
    assert sorted(variables, key=lambda v: v.name) == [
        TemplateVariable(name="a", value="1"),
        TemplateVariable(name="b.c", value="2"),
        TemplateVariable(name="b.d.e", value="3"),
    ]


def test_auto_template_no_data():
    assert auto_template(b"unchanged", {}) == b"unchanged"