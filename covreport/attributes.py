"""Parsing of source attributes and the rules that exclude code from coverage."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Sequence


class MetaKind(Enum):
    PATH = "path"
    LIST = "list"
    NAME_VALUE = "name_value"


@dataclass(frozen=True)
class Meta:
    """A parsed attribute: a path, optionally with a nested list or a value.

    Nested entries are either Meta objects or literal token text.
    """

    path: tuple[str, ...]
    kind: MetaKind = MetaKind.PATH
    nested: tuple = ()
    value: str | None = None
    leading_colon: bool = False

    def is_ident(self, name: str) -> bool:
        return not self.leading_colon and self.path == (name,)


class _Kind(Enum):
    IDENT = "ident"
    LIT = "literal"
    PUNCT = "punct"


@dataclass(frozen=True)
class _Token:
    kind: _Kind
    text: str

    def is_punct(self, text: str) -> bool:
        return self.kind is _Kind.PUNCT and self.text == text


_RAW_STRING_START = re.compile(r'b?r(#*)"')
_LITERALS = (
    re.compile(r'b?"(?:\\.|[^"\\])*"', re.DOTALL),
    re.compile(r"b?'(?:\\u\{[0-9a-fA-F]+\}|\\.|[^'\\])'"),
    re.compile(r"\d\w*(?:\.\d\w*)?"),
)
_IDENT = re.compile(r"(?:r#)?[^\W\d]\w*")


def _tokenize(text: str) -> list[_Token]:
    tokens: list[_Token] = []
    pos = 0
    while pos < len(text):
        if text[pos].isspace():
            pos += 1
            continue
        raw = _RAW_STRING_START.match(text, pos)
        if raw:
            marker = '"' + raw.group(1)
            end = text.find(marker, raw.end())
            if end < 0:
                raise ValueError("unterminated raw string literal")
            stop = end + len(marker)
            tokens.append(_Token(_Kind.LIT, text[pos:stop]))
            pos = stop
            continue
        literal = next((m for m in (p.match(text, pos) for p in _LITERALS) if m), None)
        if literal:
            tokens.append(_Token(_Kind.LIT, literal.group()))
            pos = literal.end()
            continue
        ident = _IDENT.match(text, pos)
        if ident:
            tokens.append(_Token(_Kind.IDENT, ident.group()))
            pos = ident.end()
            continue
        if text.startswith("::", pos):
            tokens.append(_Token(_Kind.PUNCT, "::"))
            pos += 2
            continue
        tokens.append(_Token(_Kind.PUNCT, text[pos]))
        pos += 1
    return tokens


class _Parser:
    def __init__(self, tokens: list[_Token]) -> None:
        self._tokens = tokens
        self._pos = 0

    def peek(self, offset: int = 0) -> _Token | None:
        index = self._pos + offset
        return self._tokens[index] if index < len(self._tokens) else None

    def _peek_punct(self, text: str, offset: int = 0) -> bool:
        token = self.peek(offset)
        return token is not None and token.is_punct(text)

    def next(self) -> _Token:
        token = self.peek()
        if token is None:
            raise ValueError("unexpected end of attribute")
        self._pos += 1
        return token

    def at_end(self) -> bool:
        return self._pos >= len(self._tokens)

    def _ident(self) -> str:
        token = self.next()
        if token.kind is not _Kind.IDENT:
            raise ValueError(f"expected identifier, found {token.text!r}")
        return token.text

    def _path(self) -> tuple[bool, tuple[str, ...]]:
        leading = False
        if self._peek_punct("::"):
            self.next()
            leading = True
        segments = [self._ident()]
        while self._peek_punct("::"):
            self.next()
            segments.append(self._ident())
        return leading, tuple(segments)

    def _literal(self) -> str:
        token = self.next()
        if token.kind is _Kind.LIT or token.text in ("true", "false"):
            return token.text
        raise ValueError(f"expected literal, found {token.text!r}")

    def meta(self) -> Meta:
        leading, path = self._path()
        if self._peek_punct("("):
            self.next()
            return Meta(path, MetaKind.LIST, self._nested_list(), leading_colon=leading)
        if self._peek_punct("="):
            self.next()
            return Meta(path, MetaKind.NAME_VALUE, value=self._literal(), leading_colon=leading)
        return Meta(path, leading_colon=leading)

    def _nested_list(self) -> tuple:
        items: list = []
        while True:
            if self._peek_punct(")"):
                self.next()
                break
            items.append(self._nested_item())
            token = self.next()
            if token.is_punct(")"):
                break
            if not token.is_punct(","):
                raise ValueError(f"expected ',' or ')', found {token.text!r}")
        return tuple(items)

    def _nested_item(self):
        token = self.peek()
        if token is None:
            raise ValueError("unexpected end of attribute")
        is_bool = token.kind is _Kind.IDENT and token.text in ("true", "false")
        if token.kind is _Kind.LIT or (is_bool and not self._peek_punct("=", 1)):
            return self.next().text
        if token.kind is _Kind.IDENT or (
            token.is_punct("::")
            and (after := self.peek(1)) is not None
            and after.kind is _Kind.IDENT
        ):
            return self.meta()
        raise ValueError(f"unexpected token {token.text!r} in attribute list")


def parse_attribute(text: str) -> Meta:
    """Parse an attribute, written either as `#[...]` or as its bare contents."""
    tokens = _tokenize(text)
    if tokens and tokens[0].is_punct("#"):
        start = 2 if len(tokens) > 1 and tokens[1].is_punct("!") else 1
        if len(tokens) <= start or not tokens[start].is_punct("["):
            raise ValueError("attribute must be enclosed in '#[' and ']'")
        if not tokens[-1].is_punct("]"):
            raise ValueError("attribute must be enclosed in '#[' and ']'")
        tokens = tokens[start + 1 : -1]
    if not tokens:
        raise ValueError("empty attribute")
    parser = _Parser(tokens)
    meta = parser.meta()
    if not parser.at_end():
        raise ValueError(f"unexpected token {parser.peek().text!r} after attribute")
    return meta


def is_test_attribute(path: Sequence[str]) -> bool:
    """True for attributes such as `test`, `tokio::test` or `crate::marker_test`."""
    return bool(path) and path[-1].endswith("test")


def _nested_paths(meta: Meta) -> Iterable[Meta]:
    return (
        item
        for item in meta.nested
        if isinstance(item, Meta) and item.kind is MetaKind.PATH
    )


def check_cfg_attr(meta: Meta) -> bool:
    """True when the attribute excludes the annotated code from coverage."""
    if meta.is_ident("no_coverage"):
        return True
    if meta.is_ident("cfg"):
        if meta.kind is not MetaKind.LIST:
            return False
        for item in meta.nested:
            if (
                isinstance(item, Meta)
                and item.kind is MetaKind.LIST
                and item.is_ident("not")
                and any(
                    p.is_ident("tarpaulin_include") or p.is_ident("tarpaulin")
                    for p in _nested_paths(item)
                )
            ):
                return True
        return False
    if meta.is_ident("cfg_attr"):
        if meta.kind is not MetaKind.LIST or not meta.nested:
            return False
        first = meta.nested[0]
        if not (
            isinstance(first, Meta)
            and first.kind is MetaKind.PATH
            and first.is_ident("tarpaulin")
        ):
            return False
        return any(
            isinstance(item, Meta)
            and item.kind is MetaKind.PATH
            and item.is_ident("no_coverage")
            for item in meta.nested[1:]
        )
    if is_test_attribute(meta.path):
        return True
    return meta.path[:2] == ("tarpaulin", "skip")


def check_attr_list(attrs: Iterable[Meta | str], ignore_tests: bool) -> bool:
    """True when none of the attributes exclude the item from coverage.

    Attributes given as text are parsed first; those that do not parse are skipped.
    """
    for attr in attrs:
        if isinstance(attr, str):
            try:
                meta = parse_attribute(attr)
            except ValueError:
                continue
        else:
            meta = attr
        if check_cfg_attr(meta):
            return False
        if meta.is_ident("cfg") and meta.kind is MetaKind.LIST:
            if ignore_tests and any(p.is_ident("test") for p in _nested_paths(meta)):
                return False
    return True