"""Bytecode design: 32-bit instruction words and immutable programs.

Word layout::

    bits 0-5   opcode
    bits 6-7   return-type tag (NULL / INT / FLOAT / STR)
    bits 8-31  operand

Call opcodes (COM, COMD, COMC, COMV, CALL, CALLARG) split the operand into an argument
count (bits 8-12) and an ident index (bits 13-31).
"""

from __future__ import annotations

from collections import Counter
from enum import IntEnum
from typing import Any

from pydantic import BaseModel, ConfigDict

from .values import ValueType

OP_MASK = 0x3F
RET_SHIFT = 6
RET_MASK = 0xC0
OPERAND_SHIFT = 8
ARGC_MASK = 0x1F
INDEX_SHIFT = 13

VALI_MIN = -(2**23)
VALI_MAX = 2**23 - 1


class Opcode(IntEnum):
    # Result register
    NULL = 0
    TRUE = 1
    FALSE = 2
    NOT = 3
    # Stack and nested runs
    POP = 4
    ENTER = 5
    ENTER_RESULT = 6
    EXIT = 7
    RESULT_ARG = 8
    # Literals
    VAL = 9
    VALI = 10
    DUP = 11
    BLOCK = 12
    EMPTY = 13
    COMPILE = 14
    COND = 15
    FORCE = 16
    RESULT = 17
    # Ident handles
    IDENT = 18
    IDENTU = 19
    IDENTARG = 20
    # Native command calls
    COM = 21
    COMD = 22
    COMC = 23
    COMV = 24
    # Concatenation
    CONC = 25
    CONCW = 26
    CONCM = 27
    # Variables
    SVAR = 28
    SVAR1 = 29
    IVAR = 30
    IVAR1 = 31
    IVAR2 = 32
    IVAR3 = 33
    FVAR = 34
    FVAR1 = 35
    # Aliases
    LOOKUP = 36
    LOOKUPU = 37
    LOOKUPARG = 38
    ALIAS = 39
    ALIASU = 40
    ALIASARG = 41
    CALL = 42
    CALLU = 43
    CALLARG = 44
    # Statements
    PRINT = 45
    LOCAL = 46
    DO = 47
    DOARGS = 48
    # Control flow (operand is a signed word offset from the next word)
    JUMP = 49
    JUMP_TRUE = 50
    JUMP_FALSE = 51
    JUMP_RESULT_TRUE = 52
    JUMP_RESULT_FALSE = 53


class RetType(IntEnum):
    NULL = ValueType.NULL << RET_SHIFT
    INT = ValueType.INTEGER << RET_SHIFT
    FLOAT = ValueType.FLOAT << RET_SHIFT
    STR = ValueType.STRING << RET_SHIFT


JUMP_OPCODES: frozenset[Opcode] = frozenset(
    {
        Opcode.JUMP,
        Opcode.JUMP_TRUE,
        Opcode.JUMP_FALSE,
        Opcode.JUMP_RESULT_TRUE,
        Opcode.JUMP_RESULT_FALSE,
    }
)

CALL_OPCODES: frozenset[Opcode] = frozenset(
    {
        Opcode.COM,
        Opcode.COMD,
        Opcode.COMC,
        Opcode.COMV,
        Opcode.CALL,
        Opcode.CALLARG,
    }
)


def encode(op: Opcode, ret: int = 0, operand: int = 0) -> int:
    return (operand << OPERAND_SHIFT) | (ret & RET_MASK) | op


def encode_call(op: Opcode, ret: int, argc: int, index: int) -> int:
    return (index << INDEX_SHIFT) | (argc << OPERAND_SHIFT) | (ret & RET_MASK) | op


def opcode_of(word: int) -> Opcode:
    return Opcode(word & OP_MASK)


def ret_of(word: int) -> ValueType:
    return ValueType((word & RET_MASK) >> RET_SHIFT)


def operand_of(word: int) -> int:
    return word >> OPERAND_SHIFT


def ret_code(value_type: ValueType, default: int = 0) -> int:
    """Return-type bits for a word type; wide word types map to `default`."""
    if value_type >= ValueType.ANY:
        return RetType.STR if value_type == ValueType.CSTRING else default
    return value_type << RET_SHIFT


def ret_code_any(value_type: ValueType) -> int:
    return ret_code(value_type, 0)


def ret_code_int(value_type: ValueType) -> int:
    return ret_code(value_type, RetType.INT)


def ret_code_float(value_type: ValueType) -> int:
    return ret_code(value_type, RetType.FLOAT)


def ret_code_str(value_type: ValueType) -> int:
    if value_type >= ValueType.ANY:
        return RetType.STR
    return value_type << RET_SHIFT


class Instruction(BaseModel):
    """Decoded view of one instruction word."""

    opcode: Opcode
    ret: ValueType = ValueType.NULL
    operand: int = 0
    argc: int | None = None
    index: int | None = None
    constant: Any = None

    def __str__(self) -> str:
        parts = [self.opcode.name.lower()]
        if self.ret != ValueType.NULL:
            parts[0] += f".{self.ret.name.lower()}"
        if self.argc is not None:
            parts.append(f"argc={self.argc}")
            parts.append(f"id={self.index}")
        elif self.constant is None and self.operand:
            parts.append(str(self.operand))
        if self.constant is not None:
            if isinstance(self.constant, Program):
                parts.append(f"<block {len(self.constant.code)} words>")
            else:
                parts.append(repr(self.constant))
        return " ".join(parts)


class Program(BaseModel):
    """A compiled, immutable code block.

    Nested `[...]` blocks, strings, floats and integers outside the inline
    range live in `constants`; instructions refer to them by pool index.
    """

    model_config = ConfigDict(frozen=True)

    code: tuple[int, ...]
    constants: tuple[Any, ...] = ()
    source: str = ""

    def __len__(self) -> int:
        return len(self.code)

    def __hash__(self) -> int:
        return id(self)

    def __eq__(self, other: object) -> bool:
        return self is other


def decode(word: int, program: Program | None = None) -> Instruction:
    op = opcode_of(word)
    if op in CALL_OPCODES:
        return Instruction(
            opcode=op,
            ret=ret_of(word),
            argc=operand_of(word) & ARGC_MASK,
            index=word >> INDEX_SHIFT,
        )
    operand = operand_of(word)
    constant = None
    pooled = op == Opcode.BLOCK or (op == Opcode.VAL and ret_of(word) != ValueType.NULL)
    if program is not None and pooled:
        constant = program.constants[operand]
    return Instruction(opcode=op, ret=ret_of(word), operand=operand, constant=constant)


def disassemble(program: Program, indent: str = "") -> str:
    lines: list[str] = []
    for pos, word in enumerate(program.code):
        inst = decode(word, program)
        lines.append(f"{indent}{pos:4d}  {inst}")
        if isinstance(inst.constant, Program):
            lines.append(disassemble(inst.constant, indent + "      "))
    return "\n".join(lines)


def count_opcodes(program: Program) -> dict[str, int]:
    """Return a frequency map of opcode names, including nested blocks.

    Args:
        program: A compiled program.

    Returns:
        A dict mapping opcode names to occurrence counts.
    """
    counter: Counter[str] = Counter()
    pending = [program]
    while pending:
        current = pending.pop()
        counter.update(opcode_of(word).name for word in current.code)
        pending.extend(c for c in current.constants if isinstance(c, Program))
    return dict(counter)
