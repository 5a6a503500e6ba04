"""Turn literal values in file contents into template references."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass


@dataclass(frozen=True)
class TemplateVariable:
    """A dotted variable name and its string value."""

    name: str
    value: str


def extract_variables(data: Mapping) -> list[TemplateVariable]:
    """Collect all string values in data, with dotted names, recursively."""
    return list(_walk(data, ()))


def _walk(data: Mapping, parent: tuple[str, ...]):
    for name, value in data.items():
        path = (*parent, name)
        if isinstance(value, str):
            yield TemplateVariable(name=".".join(path), value=value)
        elif isinstance(value, Mapping):
            yield from _walk(value, path)


def _is_word(c: str) -> bool:
    return c.isascii() and c.isalnum()


def in_word(s: str, i: int) -> bool:
    """Return whether splitting s at position i would split a word."""
    return 0 < i < len(s) and _is_word(s[i - 1]) and _is_word(s[i])


def auto_template(contents: bytes, data: Mapping) -> bytes:
    """Replace whole-word occurrences of data's values with template references.

    Longer values are replaced first; values of equal length are taken in
    name order.
    """
    variables = sorted(
        extract_variables(data or {}),
        key=lambda v: (-len(v.value.encode()), v.name),
    )
    text = contents.decode("utf-8", "surrogateescape")
    for variable in variables:
        value = variable.value
        if not value:
            continue
        index = text.find(value)
        while index not in (-1, len(text)):
            if not in_word(text, index) and not in_word(text, index + len(value)):
                replacement = "{{ ." + variable.name + " }}"
                text = text[:index] + replacement + text[index + len(value):]
                index += len(replacement)
            else:
                index += 1
            index = text.find(value, index)
    return text.encode("utf-8", "surrogateescape")