"""Tokenizer turning generator-map script text into an entity stream.

Recognised syntax::

    %fm;                  metacommand (signature)
    "sine"                quoted string
    440  -1.5  2e3        numeric literal
    ?name  @name          declare variable / constant from top of stack
    :name  =name          assign variable / push value of name
    ( ... )               group
    [ a, b, c ]           array: each element is a group, then the count
    operator              any other bare word is an operation
    # comment             to end of line
    |;                    end of script (optional)
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Iterator

_ATOMIC = set('()[],;%"#')
_WHITESPACE = set(" \t\r\n")


class EntityKind(enum.Enum):
    BEGIN_META = "begin_meta"
    META_TOKEN = "meta_token"
    END_META = "end_meta"
    STRING = "string"
    NUMERIC = "numeric"
    VARIABLE = "variable"
    CONSTANT = "constant"
    ASSIGN = "assign"
    GET = "get"
    BEGIN_GROUP = "begin_group"
    END_GROUP = "end_group"
    ARRAY = "array"
    OPERATION = "operation"


@dataclass(frozen=True, slots=True)
class Entity:
    kind: EntityKind
    line: int
    key: str = ""
    count: int = 0


class ScriptSyntaxError(ValueError):
    """Raised for text that cannot be split into entities."""

    def __init__(self, message: str, line: int) -> None:
        super().__init__(f"line {line}: {message}")
        self.message = message
        self.line = line


@dataclass(slots=True)
class _Token:
    text: str
    line: int
    quoted: bool = False


def _raw_tokens(text: str) -> Iterator[_Token]:
    line = 1
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if ch == "\n":
            line += 1
            i += 1
        elif ch in _WHITESPACE:
            i += 1
        elif ch == "#":
            while i < n and text[i] != "\n":
                i += 1
        elif ch == '"':
            start_line = line
            i += 1
            chars: list[str] = []
            while True:
                if i >= n:
                    raise ScriptSyntaxError("unterminated string literal", start_line)
                c = text[i]
                if c == '"':
                    i += 1
                    break
                if c == "\\":
                    if i + 1 >= n or text[i + 1] not in '"\\':
                        raise ScriptSyntaxError("invalid escape in string literal", line)
                    chars.append(text[i + 1])
                    i += 2
                    continue
                if c == "\n":
                    line += 1
                chars.append(c)
                i += 1
            yield _Token("".join(chars), start_line, quoted=True)
        elif ch == "|":
            if i + 1 < n and text[i + 1] == ";":
                yield _Token("|;", line)
                return
            raise ScriptSyntaxError("expected ';' after '|'", line)
        elif ch in _ATOMIC:
            yield _Token(ch, line)
            i += 1
        else:
            start = i
            while i < n and text[i] not in _WHITESPACE and text[i] not in _ATOMIC:
                i += 1
            yield _Token(text[start:i], line)


def _is_numeric(word: str) -> bool:
    head = word[1:] if word[0] in "+-" else word
    return bool(head) and head[0].isdigit()


def _word_entity(token: _Token) -> Entity:
    word = token.text
    prefix = word[0]
    prefixed = {
        "?": EntityKind.VARIABLE,
        "@": EntityKind.CONSTANT,
        ":": EntityKind.ASSIGN,
        "=": EntityKind.GET,
    }
    if prefix in prefixed:
        name = word[1:]
        if not name:
            raise ScriptSyntaxError(f"missing name after {prefix!r}", token.line)
        return Entity(prefixed[prefix], token.line, key=name)
    if _is_numeric(word):
        return Entity(EntityKind.NUMERIC, token.line, key=word)
    if "|" in word:
        raise ScriptSyntaxError(f"invalid token {word!r}", token.line)
    return Entity(EntityKind.OPERATION, token.line, key=word)


def iter_entities(text: str) -> Iterator[Entity]:
    """Yield the entities of ``text`` in order."""

    tokens = list(_raw_tokens(text))
    arrays: list[list[int]] = []  # [element count, group depth at '[']
    depth = 0
    i = 0
    while i < len(tokens):
        token = tokens[i]
        text_ = token.text
        i += 1
        if token.quoted:
            yield Entity(EntityKind.STRING, token.line, key=text_)
        elif text_ == "|;":
            break
        elif text_ == "%":
            yield Entity(EntityKind.BEGIN_META, token.line)
            while True:
                if i >= len(tokens):
                    raise ScriptSyntaxError("unterminated metacommand", token.line)
                meta = tokens[i]
                i += 1
                if not meta.quoted and meta.text == ";":
                    yield Entity(EntityKind.END_META, meta.line)
                    break
                if not meta.quoted and meta.text in _ATOMIC:
                    raise ScriptSyntaxError(f"unexpected {meta.text!r} in metacommand", meta.line)
                yield Entity(EntityKind.META_TOKEN, meta.line, key=meta.text)
        elif text_ == "(":
            depth += 1
            yield Entity(EntityKind.BEGIN_GROUP, token.line)
        elif text_ == ")":
            if depth < 1 or (arrays and arrays[-1][1] == depth):
                raise ScriptSyntaxError("unpaired ')'", token.line)
            depth -= 1
            yield Entity(EntityKind.END_GROUP, token.line)
        elif text_ == "[":
            if i < len(tokens) and not tokens[i].quoted and tokens[i].text == "]":
                i += 1
                yield Entity(EntityKind.ARRAY, token.line, count=0)
                continue
            depth += 1
            arrays.append([1, depth])
            yield Entity(EntityKind.BEGIN_GROUP, token.line)
        elif text_ == ",":
            if not arrays or arrays[-1][1] != depth:
                raise ScriptSyntaxError("',' outside of array", token.line)
            arrays[-1][0] += 1
            yield Entity(EntityKind.END_GROUP, token.line)
            yield Entity(EntityKind.BEGIN_GROUP, token.line)
        elif text_ == "]":
            if not arrays or arrays[-1][1] != depth:
                raise ScriptSyntaxError("unpaired ']'", token.line)
            count, _ = arrays.pop()
            depth -= 1
            yield Entity(EntityKind.END_GROUP, token.line)
            yield Entity(EntityKind.ARRAY, token.line, count=count)
        elif text_ == ";":
            raise ScriptSyntaxError("unexpected ';'", token.line)
        else:
            yield _word_entity(token)
    if arrays:
        raise ScriptSyntaxError("unterminated array", tokens[-1].line if tokens else 1)


__all__ = ["Entity", "EntityKind", "ScriptSyntaxError", "iter_entities"]
