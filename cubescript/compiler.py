"""Single-pass compiler: script text straight to bytecode, no AST.

Statements are separated by `;` or newlines. The first word of a statement
decides how the rest is compiled: an alias call, a native command with a
typed signature, a variable read or write, one of the keyword forms
(`local do doargs if result ! && ||`), or a call resolved at runtime.
"""

from __future__ import annotations

import logging
import math
from collections import OrderedDict
from typing import TYPE_CHECKING

from . import constants
from .bytecode import (
    VALI_MAX,
    VALI_MIN,
    Opcode,
    Program,
    RetType,
    encode,
    encode_call,
    opcode_of,
    ret_code_any,
    ret_code_float,
    ret_code_int,
    ret_code_str,
)
from .constants import MAX_ARGS
from .errors import CompileError
from .idents import Ident, IdentFlag, IdentType
from .signature import Param, ParamDefault, ParamKind
from .text import string_end, unescape_body, word_end
from .values import ValueType, _scan_int, check_number, parse_float, parse_int

if TYPE_CHECKING:
    from .registry import IdentRegistry

logger = logging.getLogger(__name__)

T = ValueType

# Word types whose lookups fetch text rather than a coerced value.
_STRINGY_LOOKUPS: frozenset[ValueType] = frozenset(
    {T.CANY, T.CSTRING, T.CODE, T.IDENT, T.COND}
)
_SUBST_BREAK = '"/;()[]@ \f\t\r\n'
_STATEMENT_END = ")];/\n"
_CACHE_SIZE = 4096


class _Builder:
    """Instruction words and constant pool for one program under construction."""

    def __init__(self):
        self.code: list[int] = []
        self.constants: list[object] = []

    def emit(self, word: int) -> int:
        self.code.append(word)
        return len(self.code) - 1

    def constant(self, value: object) -> int:
        self.constants.append(value)
        return len(self.constants) - 1

    def emit_jump(self, op: Opcode) -> int:
        """Emit a jump whose target is filled in later by `patch_jump`."""
        return self.emit(encode(op))

    def patch_jump(self, slot: int, target: int | None = None) -> None:
        target = len(self.code) if target is None else target
        self.code[slot] = encode(opcode_of(self.code[slot]), 0, target - (slot + 1))

    def build(self, source: str) -> Program:
        return Program(code=tuple(self.code), constants=tuple(self.constants), source=source)


class Compiler:
    """Compiles source text against a registry; caches programs by text."""

    def __init__(self, registry: IdentRegistry, cache_size: int = _CACHE_SIZE):
        self.registry = registry
        self.cache_size = cache_size
        self._cache: OrderedDict[str, Program] = OrderedDict()

    def compile(self, source: str, name: str = "", line: int = 1) -> Program:
        """Compile a whole script (or alias body) into a program.

        Raises:
            CompileError: on unterminated strings, blocks or parentheses.
        """
        cached = self._cache.get(source)
        if cached is not None:
            self._cache.move_to_end(source)
            return cached
        program = _Parser(self, source, name, line).program()
        self._cache[source] = program
        if len(self._cache) > self.cache_size:
            self._cache.popitem(last=False)
        logger.debug("Compiled %d chars into %d words", len(source), len(program.code))
        return program

    compile_block = compile

    def clear_cache(self) -> None:
        self._cache.clear()


class _Parser:
    def __init__(self, compiler: Compiler, src: str, name: str, line: int):
        self.compiler = compiler
        self.registry = compiler.registry
        self.src = src
        self.pos = 0
        self.name = name
        self.first_line = line

    # ── Scanning ─────────────────────────────────────────────────

    def line(self, pos: int | None = None) -> int:
        pos = self.pos if pos is None else pos
        return self.first_line + self.src.count("\n", 0, pos)

    def error(self, message: str, pos: int | None = None) -> CompileError:
        return CompileError(message, self.line(pos), self.name)

    def warn(self, message: str) -> None:
        where = f"{self.name}:{self.line()}" if self.name else str(self.line())
        self.registry.debug(f"{where}: {message}")

    def peek(self) -> str:
        return self.src[self.pos] if self.pos < len(self.src) else ""

    def skip_comments(self) -> None:
        src, n = self.src, len(self.src)
        while True:
            while self.pos < n and src[self.pos] in " \t\r":
                self.pos += 1
            if not src.startswith("//", self.pos):
                return
            newline = src.find("\n", self.pos)
            self.pos = n if newline < 0 else newline

    def cut_string(self) -> str:
        """Read a quoted string starting at the opening quote."""
        start = self.pos
        end = string_end(self.src, start + 1)
        if end >= len(self.src) or self.src[end] != '"':
            raise self.error('missing "\\""', start)
        self.pos = end + 1
        return unescape_body(self.src[start + 1 : end])

    def cut_word(self) -> str:
        end = word_end(self.src, self.pos)
        word = self.src[self.pos : end]
        self.pos = end
        return word

    # ── Emitters ─────────────────────────────────────────────────

    def emit_null(self, b: _Builder) -> None:
        b.emit(encode(Opcode.VAL, RetType.NULL))

    def emit_str(self, b: _Builder, text: str) -> None:
        b.emit(encode(Opcode.VAL, RetType.STR, b.constant(text)))

    def emit_int(self, b: _Builder, value: int = 0) -> None:
        if VALI_MIN <= value <= VALI_MAX:
            b.emit(encode(Opcode.VALI, RetType.INT, value))
        else:
            b.emit(encode(Opcode.VAL, RetType.INT, b.constant(value)))

    def emit_float(self, b: _Builder, value: float = 0.0) -> None:
        if math.isfinite(value) and value == int(value) and VALI_MIN <= value <= VALI_MAX:
            b.emit(encode(Opcode.VALI, RetType.FLOAT, int(value)))
        else:
            b.emit(encode(Opcode.VAL, RetType.FLOAT, b.constant(value)))

    def emit_block(self, b: _Builder, text: str = "", pos: int | None = None) -> None:
        if not text:
            b.emit(encode(Opcode.EMPTY))
            return
        program = self.compiler.compile_block(text, self.name, self.line(pos))
        b.emit(encode(Opcode.BLOCK, 0, b.constant(program)))

    def emit_ident(self, b: _Builder, ident: Ident | None = None) -> None:
        ident = ident or self.registry.dummy
        op = Opcode.IDENTARG if ident.index < MAX_ARGS else Opcode.IDENT
        b.emit(encode(op, 0, ident.index))

    def emit_val(self, b: _Builder, wordtype: ValueType, text: str = "") -> None:
        if wordtype in (T.ANY, T.CANY):
            if text:
                self.emit_str(b, text)
            else:
                self.emit_null(b)
        elif wordtype in (T.STRING, T.CSTRING):
            self.emit_str(b, text)
        elif wordtype == T.FLOAT:
            self.emit_float(b, parse_float(text))
        elif wordtype == T.INTEGER:
            self.emit_int(b, parse_int(text))
        elif wordtype == T.COND:
            if text:
                self.emit_block(b, text)
            else:
                self.emit_null(b)
        elif wordtype == T.CODE:
            self.emit_block(b, text)
        elif wordtype == T.IDENT:
            self.emit_ident(b, self.registry.lookup_or_create_unknown(text) if text else None)
        else:
            self.emit_null(b)

    # ── Arguments ────────────────────────────────────────────────

    def arg(self, b: _Builder, wordtype: ValueType) -> tuple[bool, str | None]:
        """Compile one argument; returns (found, bare word for WORD type)."""
        self.skip_comments()
        ch = self.peek()
        if ch == '"':
            start = self.pos
            text = self.cut_string()
            if wordtype == T.POP:
                pass
            elif wordtype == T.COND:
                if text:
                    self.emit_block(b, text, start)
                else:
                    self.emit_null(b)
            elif wordtype == T.CODE:
                self.emit_block(b, text, start)
            elif wordtype == T.WORD:
                return True, text
            elif wordtype in (T.ANY, T.CANY):
                self.emit_str(b, text)
            else:
                self.emit_val(b, wordtype, text)
            return True, None
        if ch == "$":
            self.lookup(b, wordtype)
            return True, None
        if ch == "(":
            self.pos += 1
            b.emit(encode(Opcode.ENTER))
            self.statements(b, T.CANY if wordtype > T.ANY else T.ANY, ")")
            b.emit(encode(Opcode.EXIT, ret_code_any(wordtype)))
            self._finish_dynamic(b, wordtype)
            return True, None
        if ch == "[":
            self.pos += 1
            self.block_main(b, wordtype)
            return True, None
        if wordtype == T.POP:
            start = self.pos
            self.pos = word_end(self.src, start)
            return self.pos != start, None
        start = self.pos
        word = self.cut_word()
        if not word:
            return False, None
        if wordtype in (T.COND, T.CODE):
            self.emit_block(b, word, start)
        elif wordtype == T.WORD:
            return True, word
        else:
            self.emit_val(b, wordtype, word)
        return True, None

    def _finish_dynamic(self, b: _Builder, wordtype: ValueType) -> None:
        """Convert a runtime-built value into what the word type expects."""
        if wordtype == T.POP:
            b.emit(encode(Opcode.POP))
        elif wordtype == T.COND:
            b.emit(encode(Opcode.COND))
        elif wordtype == T.CODE:
            b.emit(encode(Opcode.COMPILE))
        elif wordtype == T.IDENT:
            b.emit(encode(Opcode.IDENTU))

    def lookup(self, b: _Builder, ltype: ValueType) -> None:
        """Compile `$name` and its dynamic forms."""
        self.pos += 1
        ch = self.peek()
        name: str | None = None
        if ch in ("(", "["):
            found, _ = self.arg(b, T.CSTRING)
            if not found:
                self._invalid_lookup(b, ltype)
                return
        elif ch == "$":
            self.lookup(b, T.CSTRING)
        elif ch == '"':
            name = self.cut_string()
        else:
            name = self.cut_word()
            if not name:
                self._invalid_lookup(b, ltype)
                return
        if name is not None:
            self._lookup_ident(b, ltype, self.registry.lookup_or_create_unknown(name))
            return
        ret = RetType.STR if ltype in _STRINGY_LOOKUPS else ret_code_any(ltype)
        b.emit(encode(Opcode.LOOKUPU, ret))
        self._finish_dynamic(b, ltype)

    def _lookup_ident(self, b: _Builder, ltype: ValueType, ident: Ident) -> None:
        kind = ident.type
        if kind == IdentType.VAR:
            if ltype != T.POP:
                b.emit(encode(Opcode.IVAR, ret_code_int(ltype), ident.index))
        elif kind == IdentType.FLOAT_VAR:
            if ltype != T.POP:
                b.emit(encode(Opcode.FVAR, ret_code_float(ltype), ident.index))
        elif kind == IdentType.STRING_VAR:
            if ltype != T.POP:
                ret = RetType.STR if ltype in _STRINGY_LOOKUPS else ret_code_str(ltype)
                b.emit(encode(Opcode.SVAR, ret, ident.index))
        elif kind == IdentType.ALIAS:
            if ltype == T.POP:
                return
            op = Opcode.LOOKUPARG if ident.index < MAX_ARGS else Opcode.LOOKUP
            ret = RetType.STR if ltype in _STRINGY_LOOKUPS else ret_code_str(ltype)
            b.emit(encode(op, ret, ident.index))
        elif kind == IdentType.COMMAND:
            b.emit(encode(Opcode.ENTER))
            self._default_command_call(b, ident, ltype)
            b.emit(encode(Opcode.EXIT, ret_code_any(ltype)))
        else:
            self._invalid_lookup(b, ltype)
            return
        if ltype == T.POP and kind == IdentType.COMMAND:
            b.emit(encode(Opcode.POP))
        elif ltype != T.POP:
            self._finish_dynamic(b, ltype)

    def _default_command_call(self, b: _Builder, ident: Ident, ltype: ValueType) -> None:
        """`$cmd`: call a command with every parameter defaulted."""
        op = Opcode.COM
        numargs = 0
        for param in ident.signature.params:
            if param.kind == ParamKind.VALUE:
                self._emit_default(b, param, 0)
            elif param.kind == ParamKind.SELF:
                self.emit_ident(b, ident)
            elif param.kind == ParamKind.COUNT:
                self.emit_int(b, -1)
            elif param.kind == ParamKind.BIND:
                op = Opcode.COMD
                continue
            elif param.kind == ParamKind.REST:
                op = Opcode.COMC if param.concat else Opcode.COMV
                break
            else:
                continue
            numargs += 1
        b.emit(encode_call(op, ret_code_any(ltype), numargs, ident.index))

    def _invalid_lookup(self, b: _Builder, ltype: ValueType) -> None:
        if ltype == T.POP:
            return
        if ltype in (T.NULL, T.ANY, T.WORD, T.COND):
            self.emit_null(b)
        else:
            self.emit_val(b, ltype)

    # ── Blocks ───────────────────────────────────────────────────

    def _push_block_text(self, b: _Builder, text: str) -> bool:
        """Push raw block text with // comments removed; False when empty."""
        out: list[str] = []
        pos, n = 0, len(text)
        while pos < n:
            ch = text[pos]
            if ch == '"':
                end = string_end(text, pos + 1)
                if end < n and text[end] == '"':
                    end += 1
                out.append(text[pos:end])
                pos = end
            elif text.startswith("//", pos):
                newline = text.find("\n", pos)
                pos = n if newline < 0 else newline
            else:
                out.append(ch)
                pos += 1
        if not text:
            return False
        self.emit_str(b, "".join(out))
        return True

    def block_main(self, b: _Builder, wordtype: ValueType) -> None:
        """Compile a `[...]` block; the opening bracket is already consumed."""
        src, n = self.src, len(self.src)
        open_pos = self.pos - 1
        segment = self.pos
        concs = 0
        depth = 1
        while depth:
            while self.pos < n and src[self.pos] not in '@"/[]':
                self.pos += 1
            if self.pos >= n:
                raise self.error('missing "]"', open_pos)
            ch = src[self.pos]
            self.pos += 1
            if ch == '"':
                self.pos = string_end(src, self.pos)
                if self.pos < n and src[self.pos] == '"':
                    self.pos += 1
            elif ch == "/":
                if self.peek() == "/":
                    newline = src.find("\n", self.pos)
                    self.pos = n if newline < 0 else newline
            elif ch == "[":
                depth += 1
            elif ch == "]":
                depth -= 1
            else:
                escape = self.pos - 1
                while self.peek() == "@":
                    self.pos += 1
                level = self.pos - escape
                if depth > level:
                    continue
                if depth < level:
                    self.warn("too many @s")
                if concs + 2 > MAX_ARGS:
                    b.emit(encode(Opcode.CONCW, RetType.STR, concs))
                    concs = 1
                if self._push_block_text(b, src[segment:escape]):
                    concs += 1
                if self.block_sub(b):
                    concs += 1
                if concs:
                    segment = self.pos
        body = src[segment : self.pos - 1]
        if body:
            if not concs:
                if wordtype == T.POP:
                    return
                if wordtype in (T.CODE, T.COND):
                    self.emit_block(b, body, segment)
                    return
                if wordtype == T.IDENT:
                    self.emit_ident(b, self.registry.lookup_or_create_unknown(body))
                    return
            if concs:
                self._push_block_text(b, body)
                concs += 1
            else:
                self.emit_str(b, body)
        if concs:
            b.emit(encode(Opcode.CONCM, ret_code_any(wordtype), concs))
        empty = not concs and not body
        if wordtype == T.POP:
            if not empty:
                b.emit(encode(Opcode.POP))
        elif wordtype == T.COND:
            if empty:
                self.emit_null(b)
            else:
                b.emit(encode(Opcode.COND))
        elif wordtype == T.CODE:
            if empty:
                self.emit_block(b)
            else:
                b.emit(encode(Opcode.COMPILE))
        elif wordtype == T.IDENT:
            if empty:
                self.emit_ident(b)
            else:
                b.emit(encode(Opcode.IDENTU))
        elif wordtype in (T.CSTRING, T.CANY, T.STRING, T.NULL, T.ANY, T.WORD):
            if empty:
                self.emit_str(b, "")
        elif not concs:
            if empty:
                self.emit_val(b, wordtype)
            else:
                b.emit(encode(Opcode.FORCE, wordtype << 6))

    def block_sub(self, b: _Builder) -> bool:
        """Compile the substitution following `@` inside a block."""
        ch = self.peek()
        if ch == "(":
            found, _ = self.arg(b, T.CANY)
            return found
        if ch == "[":
            found, _ = self.arg(b, T.CSTRING)
            if not found:
                return False
            b.emit(encode(Opcode.LOOKUPU, RetType.STR))
            return True
        if ch == '"':
            name = self.cut_string()
        else:
            start = self.pos
            while self.pos < len(self.src) and self.src[self.pos] not in _SUBST_BREAK:
                self.pos += 1
            name = self.src[start : self.pos]
            if not name:
                return False
        ident = self.registry.lookup_or_create_unknown(name)
        if ident.type == IdentType.VAR:
            b.emit(encode(Opcode.IVAR, 0, ident.index))
        elif ident.type == IdentType.FLOAT_VAR:
            b.emit(encode(Opcode.FVAR, 0, ident.index))
        elif ident.type == IdentType.STRING_VAR:
            b.emit(encode(Opcode.SVAR, RetType.STR, ident.index))
        elif ident.type == IdentType.ALIAS:
            op = Opcode.LOOKUPARG if ident.index < MAX_ARGS else Opcode.LOOKUP
            b.emit(encode(op, RetType.STR, ident.index))
        else:
            self.emit_str(b, name)
            b.emit(encode(Opcode.LOOKUPU, RetType.STR))
        return True

    # ── Statements ───────────────────────────────────────────────

    def program(self) -> Program:
        b = _Builder()
        self.statements(b, T.ANY, None)
        b.emit(encode(Opcode.EXIT))
        return b.build(self.src)

    def _at_assignment(self) -> bool:
        if self.peek() != "=":
            return False
        after = self.src[self.pos + 1 : self.pos + 3]
        if not after:
            return True
        if after[0] == "/":
            return after == "//"
        return after[0] in "; \t\r\n"

    def statements(self, b: _Builder, rettype: ValueType, brak: str | None) -> None:
        open_pos = self.pos - 1
        while True:
            self.skip_comments()
            more, idname = self.arg(b, T.WORD)
            if more:
                self.skip_comments()
                if idname is not None and self._at_assignment():
                    self.pos += 1
                    more = self.assignment(b, idname)
                elif idname is None:
                    more = self.dynamic_call(b, rettype)
                else:
                    more = self.named_call(b, idname, rettype)
            while True:
                if more:
                    while self.arg(b, T.POP)[0]:
                        pass
                while self.pos < len(self.src) and self.src[self.pos] not in _STATEMENT_END:
                    self.pos += 1
                if self.pos >= len(self.src):
                    if brak is not None:
                        raise self.error(f'missing "{brak}"', open_pos)
                    return
                ch = self.src[self.pos]
                self.pos += 1
                if ch in ")]":
                    if ch == brak:
                        return
                    self.warn(f'unexpected "{ch}"')
                    break
                if ch == "/":
                    if self.peek() == "/":
                        newline = self.src.find("\n", self.pos)
                        self.pos = len(self.src) if newline < 0 else newline
                    continue
                break

    def assignment(self, b: _Builder, name: str) -> bool:
        ident = self.registry.lookup_or_create_unknown(name)
        kind = ident.type
        if kind == IdentType.ALIAS:
            more, _ = self.arg(b, T.ANY)
            if not more:
                self.emit_str(b, "")
            op = Opcode.ALIASARG if ident.index < MAX_ARGS else Opcode.ALIAS
            b.emit(encode(op, 0, ident.index))
        elif kind == IdentType.VAR:
            more, _ = self.arg(b, T.INTEGER)
            if not more:
                self.emit_int(b, 0)
            b.emit(encode(Opcode.IVAR1, 0, ident.index))
        elif kind == IdentType.FLOAT_VAR:
            more, _ = self.arg(b, T.FLOAT)
            if not more:
                self.emit_float(b, 0.0)
            b.emit(encode(Opcode.FVAR1, 0, ident.index))
        elif kind == IdentType.STRING_VAR:
            more, _ = self.arg(b, T.CSTRING)
            if not more:
                self.emit_str(b, "")
            b.emit(encode(Opcode.SVAR1, 0, ident.index))
        else:
            self.emit_str(b, name)
            more, _ = self.arg(b, T.ANY)
            if not more:
                self.emit_str(b, "")
            b.emit(encode(Opcode.ALIASU))
        return more

    def dynamic_call(self, b: _Builder, rettype: ValueType) -> bool:
        numargs = 0
        more = True
        while numargs < MAX_ARGS:
            more, _ = self.arg(b, T.CANY)
            if not more:
                break
            numargs += 1
        b.emit(encode(Opcode.CALLU, ret_code_any(rettype), numargs))
        return more

    def named_call(self, b: _Builder, name: str, rettype: ValueType) -> bool:
        ident = self.registry.lookup(name)
        if ident is None:
            if not check_number(name):
                self.emit_str(b, name)
                return self.dynamic_call(b, rettype)
            if rettype in (T.ANY, T.CANY):
                value, end = _scan_int(name)
                if end < len(name):
                    self.emit_str(b, name)
                else:
                    self.emit_int(b, value)
            else:
                self.emit_val(b, rettype, name)
            b.emit(encode(Opcode.RESULT))
            return True
        handler = self._KEYWORDS.get(ident.type)
        if handler is not None:
            return handler(self, b, ident, rettype)
        return self.command_call(b, ident, rettype)

    # ── Statement forms ──────────────────────────────────────────

    def _alias_call(self, b: _Builder, ident: Ident, rettype: ValueType) -> bool:
        numargs = 0
        more = True
        while numargs < MAX_ARGS:
            more, _ = self.arg(b, T.ANY)
            if not more:
                break
            numargs += 1
        op = Opcode.CALLARG if ident.index < MAX_ARGS else Opcode.CALL
        b.emit(encode_call(op, ret_code_any(rettype), numargs, ident.index))
        return more

    def _local(self, b: _Builder, ident: Ident, rettype: ValueType) -> bool:
        numargs = 0
        more = True
        while numargs < MAX_ARGS:
            more, _ = self.arg(b, T.IDENT)
            if not more:
                break
            numargs += 1
        if more:
            while self.arg(b, T.POP)[0]:
                pass
            more = False
        b.emit(encode(Opcode.LOCAL, 0, numargs))
        return more

    def _do(self, b: _Builder, ident: Ident, rettype: ValueType) -> bool:
        more, _ = self.arg(b, T.CODE)
        op = Opcode.DO if ident.type == IdentType.DO else Opcode.DOARGS
        b.emit(encode(op if more else Opcode.NULL, ret_code_any(rettype)))
        return more

    def _result(self, b: _Builder, ident: Ident, rettype: ValueType) -> bool:
        more, _ = self.arg(b, T.ANY)
        b.emit(encode(Opcode.RESULT if more else Opcode.NULL, ret_code_any(rettype)))
        return more

    def _not(self, b: _Builder, ident: Ident, rettype: ValueType) -> bool:
        more, _ = self.arg(b, T.CANY)
        b.emit(encode(Opcode.NOT if more else Opcode.TRUE, ret_code_any(rettype)))
        return more

    def _is_literal_block(self, b: _Builder, start: int, end: int) -> bool:
        return end - start == 1 and opcode_of(b.code[start]) in (Opcode.BLOCK, Opcode.EMPTY)

    def _if(self, b: _Builder, ident: Ident, rettype: ValueType) -> bool:
        ret = ret_code_any(rettype)
        more, _ = self.arg(b, T.CANY)
        if not more:
            b.emit(encode(Opcode.NULL, ret))
            return more
        then_start = len(b.code)
        more, _ = self.arg(b, T.CODE)
        if not more:
            b.emit(encode(Opcode.POP))
            b.emit(encode(Opcode.NULL, ret))
            return more
        else_start = len(b.code)
        more, _ = self.arg(b, T.CODE)
        else_end = len(b.code)
        has_else = else_end > else_start
        if self._is_literal_block(b, then_start, else_start) and (
            not has_else or self._is_literal_block(b, else_start, else_end)
        ):
            then_word = b.code[then_start]
            else_word = b.code[else_start] if has_else else None
            del b.code[then_start:]
            to_else = b.emit_jump(Opcode.JUMP_FALSE)
            b.emit(then_word)
            b.emit(encode(Opcode.DO, ret))
            to_end = b.emit_jump(Opcode.JUMP)
            b.patch_jump(to_else)
            if else_word is not None:
                b.emit(else_word)
                b.emit(encode(Opcode.DO, ret))
            else:
                b.emit(encode(Opcode.NULL, ret))
            b.patch_jump(to_end)
            return more
        if not has_else:
            self.emit_block(b)
        b.emit(encode_call(Opcode.COM, ret, 3, ident.index))
        return more

    def _and_or(self, b: _Builder, ident: Ident, rettype: ValueType) -> bool:
        ret = ret_code_any(rettype)
        is_and = ident.type == IdentType.AND
        spans: list[tuple[int, int]] = []
        more = True
        while len(spans) < MAX_ARGS:
            start = len(b.code)
            more, _ = self.arg(b, T.COND)
            if not more:
                break
            spans.append((start, len(b.code)))
        if not spans:
            b.emit(encode(Opcode.TRUE if is_and else Opcode.FALSE, ret))
            return more
        if not all(self._is_literal_block(b, s, e) for s, e in spans):
            b.emit(encode_call(Opcode.COMV, ret, len(spans), ident.index))
            return more
        blocks = [b.code[s] for s, _ in spans]
        del b.code[spans[0][0] :]
        jump = Opcode.JUMP_RESULT_FALSE if is_and else Opcode.JUMP_RESULT_TRUE
        pending: list[int] = []
        for i, word in enumerate(blocks):
            b.emit(word)
            b.emit(encode(Opcode.DO, ret))
            if i + 1 < len(blocks):
                pending.append(b.emit_jump(jump))
        for slot in pending:
            b.patch_jump(slot)
        return more

    def _var(self, b: _Builder, ident: Ident, rettype: ValueType) -> bool:
        if ident.type == IdentType.STRING_VAR:
            more, _ = self.arg(b, T.CSTRING)
            if not more:
                b.emit(encode(Opcode.PRINT, 0, ident.index))
                return more
            numargs = 1
            while numargs < MAX_ARGS:
                more, _ = self.arg(b, T.CANY)
                if not more:
                    break
                numargs += 1
            if numargs > 1:
                b.emit(encode(Opcode.CONC, RetType.STR, numargs))
            b.emit(encode(Opcode.SVAR1, 0, ident.index))
            return more
        if ident.type == IdentType.FLOAT_VAR:
            more, _ = self.arg(b, T.FLOAT)
            op = Opcode.FVAR1 if more else Opcode.PRINT
            b.emit(encode(op, 0, ident.index))
            return more
        more, _ = self.arg(b, T.INTEGER)
        if not more:
            b.emit(encode(Opcode.PRINT, 0, ident.index))
            return more
        op = Opcode.IVAR1
        if ident.flags & IdentFlag.HEX:
            more, _ = self.arg(b, T.INTEGER)
            if more:
                op = Opcode.IVAR2
                more, _ = self.arg(b, T.INTEGER)
                if more:
                    op = Opcode.IVAR3
        b.emit(encode(op, 0, ident.index))
        return more

    def _emit_default(self, b: _Builder, param: Param, numargs: int) -> None:
        default = param.default
        if default == ParamDefault.ZERO_INT:
            self.emit_int(b, 0)
        elif default == ParamDefault.INT_MIN:
            self.emit_int(b, constants.INT_MIN)
        elif default == ParamDefault.PREVIOUS_FLOAT and numargs > 0:
            b.emit(encode(Opcode.DUP, RetType.FLOAT))
        elif default in (ParamDefault.ZERO_FLOAT, ParamDefault.PREVIOUS_FLOAT):
            self.emit_float(b, 0.0)
        elif default == ParamDefault.PREVIOUS_STR and numargs > 0:
            b.emit(encode(Opcode.DUP, RetType.STR))
        elif default in (ParamDefault.EMPTY_STR, ParamDefault.PREVIOUS_STR):
            self.emit_str(b, "")
        elif default == ParamDefault.EMPTY_CODE:
            self.emit_block(b)
        elif default == ParamDefault.DUMMY_IDENT:
            self.emit_ident(b)
        else:
            self.emit_null(b)

    def command_call(self, b: _Builder, ident: Ident, rettype: ValueType) -> bool:
        """Compile arguments per the command's signature, filling defaults."""
        if ident.signature is None:
            self.emit_str(b, ident.name)
            return self.dynamic_call(b, rettype)
        params = ident.signature.params
        op = Opcode.COM
        numargs = 0
        fakeargs = 0
        rep = False
        more = True
        i = 0
        while i < len(params):
            param = params[i]
            i += 1
            kind = param.kind
            if kind == ParamKind.VALUE:
                if more:
                    more, _ = self.arg(b, param.wordtype)
                if not more:
                    if rep:
                        continue
                    self._emit_default(b, param, numargs)
                    fakeargs += 1
                elif param.collects_rest:
                    numconc = 1
                    while numargs + numconc < MAX_ARGS:
                        more, _ = self.arg(b, T.CSTRING)
                        if not more:
                            break
                        numconc += 1
                    if numconc > 1:
                        b.emit(encode(Opcode.CONC, RetType.STR, numconc))
                numargs += 1
            elif kind == ParamKind.SELF:
                self.emit_ident(b, ident)
                numargs += 1
            elif kind == ParamKind.COUNT:
                self.emit_int(b, numargs - fakeargs)
                numargs += 1
            elif kind == ParamKind.BIND:
                op = Opcode.COMD
            elif kind == ParamKind.REST:
                if more:
                    while numargs < MAX_ARGS:
                        more, _ = self.arg(b, param.wordtype)
                        if not more:
                            break
                        numargs += 1
                op = Opcode.COMC if param.concat else Opcode.COMV
                b.emit(encode_call(op, ret_code_any(rettype), numargs, ident.index))
                return more
            elif more and numargs < MAX_ARGS:
                i -= param.back + 1
                rep = True
            else:
                while numargs > MAX_ARGS:
                    b.emit(encode(Opcode.POP))
                    numargs -= 1
        b.emit(encode_call(op, ret_code_any(rettype), numargs, ident.index))
        return more

    _KEYWORDS = {
        IdentType.ALIAS: _alias_call,
        IdentType.LOCAL: _local,
        IdentType.DO: _do,
        IdentType.DOARGS: _do,
        IdentType.IF: _if,
        IdentType.RESULT: _result,
        IdentType.NOT: _not,
        IdentType.AND: _and_or,
        IdentType.OR: _and_or,
        IdentType.VAR: _var,
        IdentType.FLOAT_VAR: _var,
        IdentType.STRING_VAR: _var,
    }


def compile_source(registry: IdentRegistry, source: str, name: str = "") -> Program:
    return Compiler(registry).compile(source, name)
