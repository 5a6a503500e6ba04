"""A small text template engine with the syntax of Go's text/template."""

from __future__ import annotations

import json
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Callable


class TemplateError(Exception):
    """Raised when a template cannot be parsed or executed."""


_NOARG = object()

_LEXEME_RE = re.compile(
    r"""\s*(?:
    (?P<str>"(?:[^"\\]|\\.)*")
    |(?P<raw>`[^`]*`)
    |(?P<char>'(?:[^'\\]|\\.)*')
    |(?P<num>[-+]?\d+(?:\.\d+)?(?![\w.]))
    |(?P<field>(?:\.[A-Za-z_]\w*)+|\.)
    |(?P<var>\$[A-Za-z_]\w*(?:\.[A-Za-z_]\w*)*|\$(?:\.[A-Za-z_]\w*)*)
    |(?P<ident>[A-Za-z_]\w*)
    |(?P<punct>:=|=|\||\(|\)|,)
    )""",
    re.VERBOSE,
)

_KEYWORDS = {"if", "else", "end", "range", "with", "template", "define", "block"}


@dataclass
class _Pipe:
    decls: list[str]
    cmds: list[list[tuple]]
    assign: bool = False


@dataclass
class _Text:
    text: str


@dataclass
class _Action:
    pipe: _Pipe


@dataclass
class _Control:
    kind: str
    pipe: _Pipe
    body: list
    else_body: list = field(default_factory=list)


@dataclass
class _Call:
    name: str
    pipe: _Pipe | None


def _find_close(text: str, i: int) -> int:
    quote = None
    while i < len(text):
        c = text[i]
        if quote:
            if c == "\\" and quote != "`":
                i += 2
                continue
            if c == quote:
                quote = None
        elif c in "\"'`":
            quote = c
        elif text.startswith("/*", i):
            end = text.find("*/", i + 2)
            if end == -1:
                return -1
            i = end + 2
            continue
        elif text.startswith("}}", i):
            return i
        i += 1
    return -1


def _split(name: str, text: str) -> list[tuple[str, str]]:
    items: list[tuple[str, str]] = []
    pos = 0
    trim_next = False
    while True:
        start = text.find("{{", pos)
        chunk = text[pos:] if start == -1 else text[pos:start]
        if trim_next:
            chunk = chunk.lstrip()
        if start == -1:
            items.append(("text", chunk))
            return items
        inner_start = start + 2
        if (
            text.startswith("-", inner_start)
            and inner_start + 1 < len(text)
            and text[inner_start + 1].isspace()
        ):
            chunk = chunk.rstrip()
            inner_start += 2
        items.append(("text", chunk))
        end = _find_close(text, inner_start)
        if end == -1:
            raise TemplateError(f"{name}: unclosed action")
        inner = text[inner_start:end]
        trim_next = False
        if len(inner) >= 2 and inner.endswith("-") and inner[-2].isspace():
            inner = inner[:-1]
            trim_next = True
        items.append(("action", inner))
        pos = end + 2


def _lex(name: str, inner: str) -> list[tuple[str, str]]:
    lexemes = []
    pos = 0
    while pos < len(inner):
        if not inner[pos:].strip():
            break
        m = _LEXEME_RE.match(inner, pos)
        if not m:
            raise TemplateError(f"{name}: unexpected {inner[pos:].strip()!r} in action")
        lexemes.append((m.lastgroup, m.group(m.lastgroup)))
        pos = m.end()
    return lexemes


def _unquote(kind: str, value: str) -> Any:
    if kind == "raw":
        return value[1:-1]
    if kind == "str":
        return json.loads(value)
    inner = json.loads('"' + value[1:-1].replace('"', '\\"') + '"')
    return ord(inner)


class _Parser:
    def __init__(self, name: str, text: str, funcs: Mapping[str, Callable]) -> None:
        self.name = name
        self.funcs = funcs
        self.items = _split(name, text)
        self.i = 0

    def parse(self) -> list:
        nodes, _ = self._parse_list(False)
        return nodes

    def _error(self, message: str) -> TemplateError:
        return TemplateError(f"{self.name}: {message}")

    def _parse_list(self, inside: bool):
        nodes: list = []
        while self.i < len(self.items):
            kind, value = self.items[self.i]
            self.i += 1
            if kind == "text":
                if value:
                    nodes.append(_Text(value))
                continue
            stripped = value.strip()
            if stripped.startswith("/*"):
                if not stripped.endswith("*/"):
                    raise self._error("unclosed comment")
                continue
            toks = _lex(self.name, value)
            if not toks:
                raise self._error("missing value for command")
            head = toks[0]
            if head[0] == "ident" and head[1] in ("end", "else"):
                if not inside:
                    raise self._error(f"unexpected {{{{{head[1]}}}}}")
                return nodes, toks
            if head[0] == "ident" and head[1] in ("if", "range", "with"):
                nodes.append(self._parse_control(head[1], toks[1:]))
            elif head == ("ident", "template"):
                if len(toks) < 2 or toks[1][0] not in ("str", "raw"):
                    raise self._error("template name must be a string")
                pipe = self._parse_pipe(toks[2:]) if len(toks) > 2 else None
                nodes.append(_Call(_unquote(toks[1][0], toks[1][1]), pipe))
            elif head[0] == "ident" and head[1] in ("define", "block"):
                raise self._error(f"unsupported action {head[1]}")
            else:
                nodes.append(_Action(self._parse_pipe(toks)))
        if inside:
            raise self._error("unexpected EOF")
        return nodes, None

    def _parse_control(self, kind: str, toks: list) -> _Control:
        pipe = self._parse_pipe(toks)
        body, term = self._parse_list(True)
        else_body: list = []
        if term[0] == ("ident", "else"):
            if kind == "if" and term[1:2] == [("ident", "if")]:
                else_body = [self._parse_control("if", term[2:])]
            else:
                if len(term) > 1:
                    raise self._error("unexpected tokens after else")
                else_body, end = self._parse_list(True)
                if end[0] != ("ident", "end"):
                    raise self._error("expected end")
        elif len(term) > 1:
            raise self._error("unexpected tokens after end")
        return _Control(kind, pipe, body, else_body)

    def _parse_pipe(self, toks: list) -> _Pipe:
        if not toks:
            raise self._error("missing value for command")
        decls: list[str] = []
        assign = False
        j = 0
        while j < len(toks) and toks[j][0] == "var" and "." not in toks[j][1][1:]:
            if j + 1 < len(toks) and toks[j + 1][1] in (":=", "=", ","):
                decls.append(toks[j][1])
                sep = toks[j + 1][1]
                j += 2
                if sep != ",":
                    assign = sep == "="
                    break
            else:
                decls = []
                j = 0
                break
        toks = toks[j:]
        cmds: list[list[tuple]] = []
        current: list[tuple] = []
        k = 0
        while k < len(toks):
            kind, value = toks[k]
            if value == "|" and kind == "punct":
                if not current:
                    raise self._error("missing command before |")
                cmds.append(current)
                current = []
                k += 1
                continue
            operand, k = self._parse_operand(toks, k)
            current.append(operand)
        if not current:
            raise self._error("missing value for command")
        cmds.append(current)
        return _Pipe(decls, cmds, assign)

    def _parse_operand(self, toks: list, k: int):
        kind, value = toks[k]
        if kind == "punct":
            if value != "(":
                raise self._error(f"unexpected {value!r}")
            depth = 1
            end = k + 1
            while end < len(toks):
                if toks[end] == ("punct", "("):
                    depth += 1
                elif toks[end] == ("punct", ")"):
                    depth -= 1
                    if depth == 0:
                        break
                end += 1
            if depth:
                raise self._error("unclosed left paren")
            return ("sub", self._parse_pipe(toks[k + 1:end])), end + 1
        if kind in ("str", "raw", "char"):
            return ("lit", _unquote(kind, value)), k + 1
        if kind == "num":
            return ("lit", float(value) if "." in value else int(value)), k + 1
        if kind == "field":
            names = [] if value == "." else value[1:].split(".")
            return ("field", names), k + 1
        if kind == "var":
            name, _, rest = value.partition(".")
            return ("var", name, rest.split(".") if rest else []), k + 1
        if value in ("true", "false"):
            return ("lit", value == "true"), k + 1
        if value == "nil":
            return ("lit", None), k + 1
        if value in _KEYWORDS:
            raise self._error(f"unexpected keyword {value}")
        if value not in self.funcs:
            raise self._error(f'function "{value}" not defined')
        return ("func", value, self.funcs[value]), k + 1


def _to_text(value: Any) -> str:
    if value is None:
        return "<no value>"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, bytes):
        return value.decode("utf-8", "replace")
    if isinstance(value, Mapping):
        inner = " ".join(f"{_to_text(k)}:{_to_text(v)}" for k, v in sorted(value.items(), key=lambda kv: str(kv[0])))
        return f"map[{inner}]"
    if isinstance(value, (list, tuple)):
        return "[" + " ".join(_to_text(v) for v in value) + "]"
    return str(value)


def _truth(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, (bool, int, float, str, bytes, Mapping, Sequence, set)):
        return bool(value)
    return True


def _and(*args):
    for arg in args:
        if not _truth(arg):
            return arg
    return args[-1]


def _or(*args):
    for arg in args:
        if _truth(arg):
            return arg
    return args[-1]


def _index(item, *keys):
    for key in keys:
        try:
            item = item[key]
        except (KeyError, IndexError, TypeError) as exc:
            raise TemplateError(f"error calling index: {exc}") from None
    return item


def _print(*args):
    out = []
    for n, arg in enumerate(args):
        if n and not isinstance(arg, str) and not isinstance(args[n - 1], str):
            out.append(" ")
        out.append(_to_text(arg))
    return "".join(out)


def _printf(fmt, *args):
    values = iter(args)

    def repl(m):
        flags, verb = m.group(1), m.group(2)
        if verb == "%":
            return "%"
        try:
            arg = next(values)
        except StopIteration:
            return f"%!{verb}(MISSING)"
        if verb in "dfxoeg":
            return ("%" + flags + verb) % arg
        if verb == "q":
            s = json.dumps(str(arg))
        elif verb == "t":
            s = _to_text(bool(arg))
        else:
            s = _to_text(arg)
        return ("%" + flags + "s") % s

    return re.sub(r"%([-+# 0]*\d*(?:\.\d+)?)([vsdqtfxoeg%])", repl, fmt)


_BUILTINS: dict[str, Callable] = {
    "and": _and,
    "or": _or,
    "not": lambda x: not _truth(x),
    "len": len,
    "index": _index,
    "print": _print,
    "printf": _printf,
    "println": lambda *args: " ".join(_to_text(a) for a in args) + "\n",
    "eq": lambda a, *bs: any(a == b for b in bs),
    "ne": lambda a, b: a != b,
    "lt": lambda a, b: a < b,
    "le": lambda a, b: a <= b,
    "gt": lambda a, b: a > b,
    "ge": lambda a, b: a >= b,
}


def _lookup(value: Any, names: list[str]) -> Any:
    for name in names:
        if isinstance(value, Mapping):
            if name not in value:
                raise TemplateError(f'map has no entry for key "{name}"')
            value = value[name]
        elif value is None:
            raise TemplateError(f'nil data; no entry for key "{name}"')
        else:
            try:
                value = getattr(value, name)
            except AttributeError:
                raise TemplateError(f"can't evaluate field {name}") from None
    return value


class Template:
    """A parsed template."""

    def __init__(self, name: str, text: str, funcs: Mapping[str, Callable] | None = None) -> None:
        self.name = name
        self.funcs = {**_BUILTINS, **(funcs or {})}
        self._nodes = _Parser(name, text, self.funcs).parse()

    def execute(self, data: Any = None, templates: Mapping[str, Template] | None = None) -> str:
        """Execute the template against data; templates can be called by name."""
        out: list[str] = []
        _Executor(self, templates or {}, data).run(self._nodes, data, {"$": data}, out)
        return "".join(out)


class _Executor:
    def __init__(self, template: Template, templates: Mapping[str, Template], root: Any) -> None:
        self.template = template
        self.templates = templates

    def run(self, nodes: list, dot: Any, variables: dict, out: list[str]) -> None:
        for node in nodes:
            if isinstance(node, _Text):
                out.append(node.text)
            elif isinstance(node, _Action):
                value = self.pipe(node.pipe, dot, variables)
                if not node.pipe.decls:
                    out.append(_to_text(value))
            elif isinstance(node, _Call):
                self.call(node, dot, variables, out)
            else:
                self.control(node, dot, variables, out)

    def call(self, node: _Call, dot, variables, out) -> None:
        target = self.templates.get(node.name)
        if target is None and node.name == self.template.name:
            target = self.template
        if target is None:
            raise TemplateError(f'no such template "{node.name}"')
        value = self.pipe(node.pipe, dot, variables) if node.pipe else None
        _Executor(target, self.templates, value).run(target._nodes, value, {"$": value}, out)

    def control(self, node: _Control, dot, variables, out) -> None:
        scope = dict(variables)
        if node.kind == "range":
            pipe = _Pipe([], node.pipe.cmds)
            value = self.pipe(pipe, dot, scope)
            if isinstance(value, Mapping):
                pairs = [(k, value[k]) for k in sorted(value)]
            elif value is None:
                pairs = []
            elif isinstance(value, (list, tuple, str, bytes)):
                pairs = list(enumerate(value))
            else:
                raise TemplateError(f"range can't iterate over {_to_text(value)}")
            if not pairs:
                self.run(node.else_body, dot, scope, out)
                return
            for key, element in pairs:
                if len(node.pipe.decls) == 1:
                    scope[node.pipe.decls[0]] = element
                elif len(node.pipe.decls) == 2:
                    scope[node.pipe.decls[0]] = key
                    scope[node.pipe.decls[1]] = element
                self.run(node.body, element, scope, out)
            return
        value = self.pipe(node.pipe, dot, scope)
        if _truth(value):
            self.run(node.body, value if node.kind == "with" else dot, scope, out)
        else:
            self.run(node.else_body, dot, scope, out)

    def pipe(self, pipe: _Pipe, dot, variables: dict) -> Any:
        value: Any = _NOARG
        for cmd in pipe.cmds:
            value = self.command(cmd, dot, variables, value)
        for name in pipe.decls:
            if pipe.assign and name not in variables:
                raise TemplateError(f"undefined variable: {name}")
            variables[name] = value
        return value

    def command(self, cmd: list[tuple], dot, variables, piped) -> Any:
        first = cmd[0]
        if first[0] == "func":
            args = [self.arg(a, dot, variables) for a in cmd[1:]]
            if piped is not _NOARG:
                args.append(piped)
            try:
                return first[2](*args)
            except TemplateError:
                raise
            except Exception as exc:
                raise TemplateError(f"error calling {first[1]}: {exc}") from exc
        if len(cmd) > 1 or piped is not _NOARG:
            raise TemplateError("can't give argument to non-function")
        return self.arg(first, dot, variables)

    def arg(self, operand: tuple, dot, variables) -> Any:
        kind = operand[0]
        if kind == "lit":
            return operand[1]
        if kind == "field":
            return _lookup(dot, operand[1])
        if kind == "var":
            if operand[1] not in variables:
                raise TemplateError(f"undefined variable: {operand[1]}")
            return _lookup(variables[operand[1]], operand[2])
        if kind == "sub":
            return self.pipe(operand[1], dot, variables)
        return self.command([operand], dot, variables, _NOARG)