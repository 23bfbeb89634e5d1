"""Text helpers shared by the compiler, list commands and config writer."""

from __future__ import annotations

from dataclasses import dataclass

ID_SPECIAL = '"/;()[]@ \f\t\r\n'
LIST_BLANK = " \t\r\n"
MAX_BRACKET_DEPTH = 100

_ESCAPES = {"\n": "^n", "\t": "^t", "\f": "^f", '"': '^"', "^": "^^"}
_UNESCAPES = {"n": "\n", "t": "\t", "f": "\f"}


def escape_string(text: str) -> str:
    """Quote `text` with ^ escapes so the compiler reads it back verbatim."""
    return '"' + "".join(_ESCAPES.get(ch, ch) for ch in text) + '"'


def unescape_body(text: str) -> str:
    out: list[str] = []
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        i += 1
        if ch == "^":
            if i >= n:
                break
            esc = text[i]
            i += 1
            out.append(_UNESCAPES.get(esc, esc))
        else:
            out.append(ch)
    return "".join(out)


def unescape_string(text: str) -> str:
    """Inverse of escape_string; a surrounding pair of quotes is dropped."""
    if len(text) >= 2 and text[0] == '"' and text[-1] == '"':
        text = text[1:-1]
    return unescape_body(text)


def escape_id(name: str) -> str:
    if any(ch in ID_SPECIAL for ch in name):
        return escape_string(name)
    return name


def string_end(text: str, pos: int) -> int:
    """Index of the quote, newline or end that terminates a string body."""
    n = len(text)
    while pos < n:
        ch = text[pos]
        if ch in '\r\n"':
            return pos
        if ch == "^":
            pos += 1
            if pos >= n:
                return n
        pos += 1
    return n


def word_end(text: str, pos: int) -> int:
    """End of a bare word; balanced () and [] may appear inside it."""
    n = len(text)
    brackets: list[str] = []
    while pos < n:
        ch = text[pos]
        if ch in '"; \t\r\n':
            return pos
        if ch == "/":
            if pos + 1 < n and text[pos + 1] == "/":
                return pos
        elif ch in "[(":
            if len(brackets) >= MAX_BRACKET_DEPTH:
                return pos
            brackets.append(ch)
        elif ch == "]":
            if not brackets or brackets.pop() != "[":
                return pos
        elif ch == ")":
            if not brackets or brackets.pop() != "(":
                return pos
        pos += 1
    return n


def validate_block(text: str) -> bool:
    """True when `text` can be written back inside [ ] unchanged."""
    brackets: list[str] = []
    pos = 0
    n = len(text)
    while pos < n:
        ch = text[pos]
        if ch in "[(":
            if len(brackets) >= MAX_BRACKET_DEPTH:
                return False
            brackets.append(ch)
        elif ch == "]":
            if not brackets or brackets.pop() != "[":
                return False
        elif ch == ")":
            if not brackets or brackets.pop() != "(":
                return False
        elif ch == '"':
            pos = string_end(text, pos + 1)
            if pos >= n or text[pos] != '"':
                return False
        elif ch == "/":
            if pos + 1 < n and text[pos + 1] == "/":
                return False
        elif ch in "@\f":
            return False
        pos += 1
    return not brackets


def strip_colors(text: str) -> str:
    out: list[str] = []
    i = 0
    while i < len(text):
        if text[i] == "\f":
            i += 2
            continue
        out.append(text[i])
        i += 1
    return "".join(out)


# ── Lists ────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ListElement:
    """One element of a whitespace-separated list.

    `start`/`end` delimit the element body, `quote_start`/`quote_end`
    include the surrounding quotes or brackets.
    """

    start: int
    end: int
    quote_start: int
    quote_end: int
    quoted: bool

    def body(self, text: str) -> str:
        return text[self.start : self.end]

    def raw(self, text: str) -> str:
        return text[self.quote_start : self.quote_end]

    def value(self, text: str) -> str:
        body = self.body(text)
        return unescape_body(body) if self.quoted else body


def _skip_list_blanks(text: str, pos: int) -> int:
    n = len(text)
    while True:
        while pos < n and text[pos] in LIST_BLANK:
            pos += 1
        if text.startswith("//", pos):
            newline = text.find("\n", pos)
            pos = n if newline < 0 else newline
            continue
        return pos


def next_list_element(text: str, pos: int) -> tuple[ListElement | None, int]:
    pos = _skip_list_blanks(text, pos)
    n = len(text)
    if pos >= n:
        return None, pos
    ch = text[pos]
    quote_start = pos
    pos += 1
    if ch == '"':
        start = pos
        pos = string_end(text, pos)
        end = pos
        if pos < n and text[pos] == '"':
            pos += 1
        element = ListElement(start, end, quote_start, pos, True)
    elif ch in "([":
        start = pos
        depth = 1
        while True:
            if pos >= n:
                element = ListElement(start, n, quote_start, n, False)
                break
            c = text[pos]
            pos += 1
            if c == '"':
                pos = string_end(text, pos)
                if pos < n and text[pos] == '"':
                    pos += 1
            elif c == "/" and pos < n and text[pos] == "/":
                newline = text.find("\n", pos)
                pos = n if newline < 0 else newline
            elif c == ch:
                depth += 1
            elif (c == ")" and ch == "(") or (c == "]" and ch == "["):
                depth -= 1
                if depth <= 0:
                    element = ListElement(start, pos - 1, quote_start, pos, False)
                    break
    else:
        pos = word_end(text, quote_start + 1)
        element = ListElement(quote_start, pos, quote_start, pos, False)
    pos = _skip_list_blanks(text, pos)
    if pos < n and text[pos] == ";":
        pos += 1
    return element, pos


def list_elements(text: str) -> list[ListElement]:
    elements: list[ListElement] = []
    pos = 0
    while True:
        element, pos = next_list_element(text, pos)
        if element is None:
            return elements
        elements.append(element)


def explode_list(text: str) -> list[str]:
    return [e.value(text) for e in list_elements(text)]


def list_len(text: str) -> int:
    return len(list_elements(text))
