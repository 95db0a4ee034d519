"""
Forward-only JSON scanner.

`iterate_json` produces a lazy, finite, non-restartable sequence of parse
events. Each event carries the dotted/bracketed path of the value it
describes, starting from the empty root path::

    {"CacheServers": [{"Url": "https://a", "GlobalDefault": true}]}

    ""                               OBJECT
    ".CacheServers"                  ARRAY
    ".CacheServers[0]"               OBJECT
    ".CacheServers[0].Url"           STRING  "https://a"
    ".CacheServers[0].GlobalDefault" TRUE    True

Input is only scanned as far as the consumer pulls, so a consumer that stops
after its first match never sees (or fails on) anything later in the
document.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterator, List, Optional

from scalar.exceptions import JsonParseError


class JsonType(Enum):
    NULL = "null"
    FALSE = "false"
    TRUE = "true"
    NUMBER = "number"
    STRING = "string"
    ARRAY = "array"
    OBJECT = "object"


@dataclass(frozen=True)
class JsonToken:
    key: str
    type: JsonType
    value: Any = None


_WHITESPACE = " \t\r\n"
_NUMBER = re.compile(r"-?(?:0|[1-9][0-9]*)(?:\.[0-9]+)?(?:[eE][+-]?[0-9]+)?")
_ESCAPES = {
    '"': '"',
    "\\": "\\",
    "/": "/",
    "b": "\b",
    "f": "\f",
    "n": "\n",
    "r": "\r",
    "t": "\t",
}


@dataclass
class _Container:
    key: str
    close: str
    index: int = 0


class _Scanner:
    def __init__(self, text: str):
        self.text = text
        self.pos = 0

    def fail(self, message: str):
        raise JsonParseError(message, self.pos)

    def peek(self) -> str:
        while self.pos < len(self.text) and self.text[self.pos] in _WHITESPACE:
            self.pos += 1
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def expect(self, char: str) -> None:
        if self.peek() != char:
            self.fail(f"expected '{char}'")
        self.pos += 1

    def tokens(self) -> Iterator[JsonToken]:
        # open containers, innermost last
        stack: List[_Container] = []
        key = ""
        while True:
            c = self.peek()
            if c == "{" or c == "[":
                self.pos += 1
                if c == "{":
                    yield JsonToken(key, JsonType.OBJECT)
                    stack.append(_Container(key, "}"))
                else:
                    yield JsonToken(key, JsonType.ARRAY)
                    stack.append(_Container(key, "]"))
                if self.peek() != stack[-1].close:
                    key = self.member(stack[-1])
                    continue
            else:
                yield self.scalar(key)

            # a value just ended: close containers until one has more members
            while stack:
                container = stack[-1]
                c = self.peek()
                if c == container.close:
                    self.pos += 1
                    stack.pop()
                    continue
                if c != ",":
                    self.fail(f"expected ',' or '{container.close}'")
                self.pos += 1
                key = self.member(container)
                break
            else:
                break

        if self.peek():
            self.fail("trailing data after document")

    def member(self, container: "_Container") -> str:
        """Consume what precedes the next value of `container`, return its key."""
        if container.close == "]":
            key = f"{container.key}[{container.index}]"
            container.index += 1
            return key
        if self.peek() != '"':
            self.fail("expected member name")
        name = self.string()
        self.expect(":")
        return f"{container.key}.{name}"

    def scalar(self, key: str) -> JsonToken:
        c = self.peek()
        if c == '"':
            return JsonToken(key, JsonType.STRING, self.string())
        if c == "t":
            self.literal("true")
            return JsonToken(key, JsonType.TRUE, True)
        if c == "f":
            self.literal("false")
            return JsonToken(key, JsonType.FALSE, False)
        if c == "n":
            self.literal("null")
            return JsonToken(key, JsonType.NULL, None)
        if c == "-" or c.isdigit():
            return JsonToken(key, JsonType.NUMBER, self.number())
        if not c:
            self.fail("unexpected end of input")
        self.fail(f"unexpected character '{c}'")

    def literal(self, word: str) -> None:
        if not self.text.startswith(word, self.pos):
            self.fail(f"invalid literal, expected '{word}'")
        self.pos += len(word)

    def number(self):
        match = _NUMBER.match(self.text, self.pos)
        if not match:
            self.fail("invalid number")
        self.pos = match.end()
        literal = match.group(0)
        if any(c in literal for c in ".eE"):
            return float(literal)
        return int(literal)

    def string(self) -> str:
        # positioned on the opening quote
        self.pos += 1
        out = []
        while True:
            if self.pos >= len(self.text):
                self.fail("unterminated string")
            c = self.text[self.pos]
            if c == '"':
                self.pos += 1
                return "".join(out)
            if c == "\\":
                out.append(self.escape())
            elif ord(c) < 0x20:
                self.fail("control character in string")
            else:
                out.append(c)
                self.pos += 1

    def escape(self) -> str:
        # positioned on the backslash
        self.pos += 1
        if self.pos >= len(self.text):
            self.fail("unterminated string")
        c = self.text[self.pos]
        if c in _ESCAPES:
            self.pos += 1
            return _ESCAPES[c]
        if c != "u":
            self.fail(f"invalid escape '\\{c}'")
        code = self.hex4()
        if 0xD800 <= code < 0xDC00 and self.text.startswith("\\u", self.pos):
            saved = self.pos
            self.pos += 1
            low = self.hex4()
            if 0xDC00 <= low < 0xE000:
                return chr(0x10000 + ((code - 0xD800) << 10) + (low - 0xDC00))
            self.pos = saved
        return chr(code)

    def hex4(self) -> int:
        # positioned on the 'u'
        digits = self.text[self.pos + 1 : self.pos + 5]
        if len(digits) != 4 or not all(d in "0123456789abcdefABCDEF" for d in digits):
            self.fail("invalid \\u escape")
        self.pos += 5
        return int(digits, 16)


def iterate_json(text: str) -> Iterator[JsonToken]:
    """Lazily iterate over the parse events of a JSON document."""
    return _Scanner(text).tokens()


def first_match(
    tokens: Iterator[JsonToken], predicate: Callable[[JsonToken], bool]
) -> Optional[JsonToken]:
    """
    Return the first token accepted by `predicate`.

    Iteration stops right there; later tokens are never scanned.
    """
    for token in tokens:
        if predicate(token):
            return token
    return None
