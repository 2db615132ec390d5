"""Import specifier lexer for JavaScript modules.

Finds the string specifiers of::

    import x from "a"          import "a"
    import {x, y as z} from "a"  import * as ns from "a"
    export {x} from "a"        export * from "a"
    export * as ns from "a"    import("a")

and records their offsets, so the rewriter can replace exactly those
substrings.  This is a lexer, not a parser: it understands enough of the
token grammar (comments, strings, template literals with nested ``${}``,
regular-expression literals) to never mistake text inside them for an
import.  ``import.meta`` and dynamic imports with computed arguments are
skipped.
"""

from collections.abc import Iterator
from dataclasses import dataclass
from typing import Literal, TypeAlias

SpecifierKind: TypeAlias = Literal["import", "export", "dynamic"]

_QUOTES = "\"'"

# Keywords after which a ``/`` starts a regular expression, not a division.
_EXPRESSION_KEYWORDS = frozenset({
    "await",
    "case",
    "delete",
    "do",
    "else",
    "in",
    "instanceof",
    "new",
    "of",
    "return",
    "throw",
    "typeof",
    "void",
    "yield",
})

# Punctuators after which ``/`` is division.
_VALUE_END_PUNCT = frozenset({")", "]"})


@dataclass(frozen=True, slots=True)
class ImportSpecifier:
    """One module specifier found in source.

    ``start``/``end`` delimit the specifier text inside its quotes, so
    ``source[start:end] == value``.
    """

    value: str
    start: int
    end: int
    kind: SpecifierKind


@dataclass(frozen=True, slots=True)
class ModuleRecord:
    """The specifiers of one module, in source order."""

    source: str
    specifiers: tuple[ImportSpecifier, ...]

    def __iter__(self) -> Iterator[ImportSpecifier]:
        return iter(self.specifiers)

    def __len__(self) -> int:
        return len(self.specifiers)


def _is_ident_start(ch: str) -> bool:
    return ch.isalpha() or ch in "_$" or (ord(ch) > 127 and ch.isidentifier())


def _is_ident_part(ch: str) -> bool:
    return ch.isalnum() or ch in "_$" or (ord(ch) > 127 and ("a" + ch).isidentifier())


class _Lexer:
    """Single-pass scanner.  Use ``scan_imports()`` instead."""

    __slots__ = ("_found", "_last", "_n", "_src", "_stack")

    def __init__(self, source: str) -> None:
        self._src = source
        self._n = len(source)
        self._found: list[ImportSpecifier] = []
        # Last significant token: ("punct" | "ident" | "keyword" | "value", text)
        self._last: tuple[str, str] = ("punct", ";")
        # "brace" for ordinary braces, "template" for ``${`` openings
        self._stack: list[str] = []

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------

    def run(self) -> tuple[ImportSpecifier, ...]:
        src, n = self._src, self._n
        pos = 0
        if src.startswith("#!"):
            pos = self._skip_line(pos)

        while pos < n:
            ch = src[pos]

            if ch.isspace():
                pos += 1
            elif ch == "/":
                nxt = src[pos + 1] if pos + 1 < n else ""
                if nxt == "/":
                    pos = self._skip_line(pos)
                elif nxt == "*":
                    pos = self._skip_block_comment(pos)
                elif self._regex_allowed():
                    pos = self._skip_regex(pos)
                    self._last = ("value", "/")
                else:
                    pos += 1
                    self._last = ("punct", "/")
            elif ch in _QUOTES:
                pos = self._skip_string(pos)
                self._last = ("value", ch)
            elif ch == "`":
                pos = self._scan_template(pos + 1)
            elif ch == "{":
                self._stack.append("brace")
                self._last = ("punct", "{")
                pos += 1
            elif ch == "}":
                if self._stack and self._stack.pop() == "template":
                    pos = self._scan_template(pos + 1)
                else:
                    self._last = ("punct", "}")
                    pos += 1
            elif ch.isdigit():
                pos = self._skip_number(pos)
                self._last = ("value", "0")
            elif _is_ident_start(ch):
                word, end = self._read_ident(pos)
                member_access = self._last == ("punct", ".")
                if not member_access and word == "import":
                    self._parse_import(end)
                elif not member_access and word == "export":
                    self._parse_export(end)
                kind = "keyword" if word in _EXPRESSION_KEYWORDS and not member_access else "ident"
                self._last = (kind, word)
                pos = end
            else:
                self._last = ("punct", ch)
                pos += 1

        return tuple(self._found)

    def _regex_allowed(self) -> bool:
        kind, text = self._last
        if kind == "keyword":
            return True
        if kind == "punct":
            return text not in _VALUE_END_PUNCT
        return False

    # ------------------------------------------------------------------
    # Token skipping
    # ------------------------------------------------------------------

    def _skip_line(self, pos: int) -> int:
        end = self._src.find("\n", pos)
        return self._n if end == -1 else end + 1

    def _skip_block_comment(self, pos: int) -> int:
        end = self._src.find("*/", pos + 2)
        return self._n if end == -1 else end + 2

    def _skip_string(self, pos: int) -> int:
        """Return the offset just past the closing quote at or after *pos*."""
        src, n = self._src, self._n
        quote = src[pos]
        i = pos + 1
        while i < n:
            c = src[i]
            if c == "\\":
                i += 2
                continue
            if c == quote:
                return i + 1
            if c == "\n":
                return i  # unterminated
            i += 1
        return n

    def _skip_regex(self, pos: int) -> int:
        src, n = self._src, self._n
        i = pos + 1
        in_class = False
        while i < n:
            c = src[i]
            if c == "\\":
                i += 2
                continue
            if c == "\n":
                return i
            if c == "[":
                in_class = True
            elif c == "]":
                in_class = False
            elif c == "/" and not in_class:
                i += 1
                break
            i += 1
        while i < n and _is_ident_part(src[i]):
            i += 1
        return i

    def _scan_template(self, pos: int) -> int:
        """Scan template text from *pos* until the closing backtick or ``${``."""
        src, n = self._src, self._n
        i = pos
        while i < n:
            c = src[i]
            if c == "\\":
                i += 2
                continue
            if c == "`":
                self._last = ("value", "`")
                return i + 1
            if c == "$" and i + 1 < n and src[i + 1] == "{":
                self._stack.append("template")
                self._last = ("punct", "{")
                return i + 2
            i += 1
        return n

    def _skip_number(self, pos: int) -> int:
        src, n = self._src, self._n
        i = pos
        while i < n and (src[i].isalnum() or src[i] in "._"):
            i += 1
        return i

    def _read_ident(self, pos: int) -> tuple[str, int]:
        src, n = self._src, self._n
        if pos >= n or not _is_ident_start(src[pos]):
            return "", pos
        i = pos + 1
        while i < n and _is_ident_part(src[i]):
            i += 1
        return src[pos:i], i

    def _skip_trivia(self, pos: int) -> int:
        """Skip whitespace and comments."""
        src, n = self._src, self._n
        i = pos
        while i < n:
            c = src[i]
            if c.isspace():
                i += 1
            elif src.startswith("//", i):
                i = self._skip_line(i)
            elif src.startswith("/*", i):
                i = self._skip_block_comment(i)
            else:
                break
        return i

    def _skip_braces(self, pos: int) -> int | None:
        """Return the offset after the ``}`` matching the ``{`` at *pos*."""
        src, n = self._src, self._n
        depth = 0
        i = pos
        while i < n:
            i = self._skip_trivia(i)
            if i >= n:
                break
            c = src[i]
            if c in _QUOTES:
                i = self._skip_string(i)
                continue
            if c == "{":
                depth += 1
            elif c == "}":
                depth -= 1
                if depth == 0:
                    return i + 1
            elif c == ";":
                return None
            i += 1
        return None

    # ------------------------------------------------------------------
    # Declarations
    # ------------------------------------------------------------------

    def _record(self, quote_pos: int, kind: SpecifierKind) -> int:
        """Record the string literal at *quote_pos*; return the offset past it."""
        end = self._skip_string(quote_pos)
        if end > quote_pos + 1 and self._src[end - 1] == self._src[quote_pos]:
            start = quote_pos + 1
            self._found.append(
                ImportSpecifier(value=self._src[start : end - 1], start=start, end=end - 1, kind=kind)
            )
        return end

    def _expect_from(self, pos: int, kind: SpecifierKind) -> None:
        i = self._skip_trivia(pos)
        word, end = self._read_ident(i)
        if word != "from":
            return
        i = self._skip_trivia(end)
        if i < self._n and self._src[i] in _QUOTES:
            self._record(i, kind)

    def _parse_clause(self, pos: int, kind: SpecifierKind) -> None:
        """Parse ``name, {…}``, ``{…}``, or ``* as ns`` followed by ``from``."""
        src, n = self._src, self._n
        i = self._skip_trivia(pos)
        while i < n:
            c = src[i]
            if c == "{":
                after = self._skip_braces(i)
                if after is not None:
                    self._expect_from(after, kind)
                return
            if c == "*":
                i = self._skip_trivia(i + 1)
                word, end = self._read_ident(i)
                if word == "as":
                    i = self._skip_trivia(end)
                    name, end = self._read_ident(i)
                    if not name:
                        return
                    i = end
                self._expect_from(i, kind)
                return
            if kind == "import" and _is_ident_start(c):
                _name, end = self._read_ident(i)
                i = self._skip_trivia(end)
                if i < n and src[i] == ",":
                    i = self._skip_trivia(i + 1)
                    continue
                self._expect_from(i, kind)
                return
            return

    def _parse_import(self, pos: int) -> None:
        src, n = self._src, self._n
        i = self._skip_trivia(pos)
        if i >= n:
            return
        c = src[i]
        if c == "(":
            j = self._skip_trivia(i + 1)
            if j < n and src[j] in _QUOTES:
                end = self._skip_string(j)
                k = self._skip_trivia(end)
                if k < n and src[k] in ",)":
                    self._record(j, "dynamic")
            return
        if c in _QUOTES:
            self._record(i, "import")
            return
        if c == ".":
            return  # import.meta
        self._parse_clause(i, "import")

    def _parse_export(self, pos: int) -> None:
        i = self._skip_trivia(pos)
        if i < self._n and self._src[i] in "{*":
            self._parse_clause(i, "export")


def scan_imports(source: str) -> ModuleRecord:
    """Find every static import/export and literal dynamic-import specifier."""
    return ModuleRecord(source=source, specifiers=_Lexer(source).run())
