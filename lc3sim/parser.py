from __future__ import annotations

import re
from typing import Dict, List, Optional

from lc3sim.builder import ProgramBuilder
from lc3sim.cpu import CPUState
from lc3sim.errors import ConfigurationError
from lc3sim.model import Operand, Program
from lc3sim.traps import find_trap_operand


MNEMONICS = {"ADD", "AND", "NOT", "LD", "LDI", "ST", "STI", "LDR", "STR", "TRAP", "HALT"}
DIRECTIVES = {".ORIG", ".FILL", ".END", ".BLKW", ".STRINGZ"}

BRANCH_RE = re.compile(r"^BR([NZP]*)$", re.IGNORECASE)
LABEL_RE = re.compile(r"^([A-Za-z_][A-Za-z0-9_]*)\s*:?$")
REGISTER_RE = re.compile(r"^[Rr]([0-7])$")


class ParseError(ConfigurationError):
    def __init__(self, message: str, line_no: int, text: str) -> None:
        super().__init__(message)
        self.line_no = line_no
        self.text = text

    def __str__(self) -> str:
        return f"line {self.line_no}: {self.message}"


def _strip_comment(line: str) -> str:
    return line.split(";", 1)[0]


def _is_keyword(token: str) -> bool:
    upper = token.upper()
    return upper in MNEMONICS or upper in DIRECTIVES or bool(BRANCH_RE.match(token))


def parse_number(raw: str) -> Optional[int]:
    """Parse ``#12``, ``#-3``, ``x3100``, ``0x3100``, ``b0101`` or plain decimal."""
    text = raw.strip()
    if text.startswith("#"):
        text = text[1:]
    sign = 1
    if text.startswith("-"):
        sign = -1
        text = text[1:]
    if not text:
        return None
    lower = text.lower()
    if re.fullmatch(r"0x[0-9a-f]+", lower):
        return sign * int(lower[2:], 16)
    if re.fullmatch(r"x[0-9a-f]+", lower):
        return sign * int(lower[1:], 16)
    if re.fullmatch(r"b[01]+", lower):
        return sign * int(lower[1:], 2)
    if re.fullmatch(r"\d+", lower):
        return sign * int(lower, 10)
    return None


def _split_operands(text: str) -> List[str]:
    return [item for item in re.split(r"[,\s]+", text.strip()) if item]


class _Line:
    def __init__(self, line_no: int, text: str) -> None:
        self.line_no = line_no
        self.text = text

    def error(self, message: str) -> ParseError:
        return ParseError(message, self.line_no, self.text)

    def register(self, token: str) -> int:
        match = REGISTER_RE.match(token)
        if not match:
            raise self.error(f"Expected a register, got {token}")
        return int(match.group(1))

    def number(self, token: str) -> int:
        value = parse_number(token)
        if value is None:
            raise self.error(f"Invalid number: {token}")
        return value

    def label(self, token: str) -> str:
        if not LABEL_RE.match(token) or _is_keyword(token) or REGISTER_RE.match(token):
            raise self.error(f"Invalid label: {token}")
        return token.rstrip(":")

    def source(self, token: str) -> Operand:
        if REGISTER_RE.match(token):
            return Operand.reg(self.register(token))
        return Operand.imm(self.number(token))

    def expect(self, mnemonic: str, operands: List[str], count: int) -> None:
        if len(operands) != count:
            raise self.error(f"Expected {count} operands for {mnemonic}, got {len(operands)}")


def _emit(builder: ProgramBuilder, line: _Line, mnemonic: str, operands: List[str]) -> None:
    branch = BRANCH_RE.match(mnemonic)
    upper = mnemonic.upper()
    if branch:
        line.expect(upper, operands, 1)
        builder.br(branch.group(1), line.label(operands[0]))
    elif upper in ("ADD", "AND"):
        line.expect(upper, operands, 3)
        dest = line.register(operands[0])
        src1 = line.register(operands[1])
        src2 = line.source(operands[2])
        if upper == "ADD":
            builder.add(dest, src1, src2)
        else:
            builder.and_(dest, src1, src2)
    elif upper == "NOT":
        line.expect(upper, operands, 2)
        builder.not_(line.register(operands[0]), line.register(operands[1]))
    elif upper in ("LD", "LDI", "ST", "STI"):
        line.expect(upper, operands, 2)
        emit = {"LD": builder.ld, "LDI": builder.ldi, "ST": builder.st, "STI": builder.sti}[upper]
        emit(line.register(operands[0]), line.label(operands[1]))
    elif upper in ("LDR", "STR"):
        line.expect(upper, operands, 3)
        emit = builder.ldr if upper == "LDR" else builder.str_
        emit(line.register(operands[0]), line.register(operands[1]), line.number(operands[2]))
    elif upper == "TRAP":
        line.expect(upper, operands, 1)
        defn = find_trap_operand(operands[0])
        if defn is None:
            raise line.error(f"Unsupported trap vector: {operands[0]}")
        builder.trap(defn.vector)
    elif upper == "HALT":
        line.expect(upper, operands, 0)
        builder.halt()
    else:
        raise line.error(f"Unknown instruction: {mnemonic}")


def assemble(text: str, builder: Optional[ProgramBuilder] = None) -> ProgramBuilder:
    builder = builder or ProgramBuilder()
    seen_labels: set[str] = set()

    for idx, raw_line in enumerate(text.splitlines(), start=1):
        line_text = _strip_comment(raw_line).strip()
        if not line_text:
            continue
        line = _Line(idx, raw_line.rstrip("\n"))

        parts = line_text.split(None, 1)
        label: Optional[str] = None
        if not _is_keyword(parts[0]):
            label = line.label(parts[0])
            if label in seen_labels:
                raise line.error(f"Duplicate label: {label}")
            seen_labels.add(label)
            parts = parts[1].split(None, 1) if len(parts) > 1 else []

        if not parts:
            builder.bind_position_label(label)
            continue

        keyword = parts[0]
        operands = _split_operands(parts[1]) if len(parts) > 1 else []
        upper = keyword.upper()
        try:
            if upper == ".END":
                if label:
                    builder.bind_position_label(label)
                break
            if upper == ".ORIG":
                line.expect(upper, operands, 1)
                builder.orig(line.number(operands[0]))
                if label:
                    builder.bind_position_label(label)
                continue
            if upper == ".FILL":
                if not label:
                    raise line.error(".FILL needs a label")
                line.expect(upper, operands, 1)
                builder.bind_constant_label(label, line.number(operands[0]))
                continue
            if upper in DIRECTIVES:
                raise line.error(f"Unsupported directive: {upper}")
            if not _is_keyword(keyword):
                raise line.error(f"Unknown instruction: {keyword}")
            if label:
                builder.bind_position_label(label)
            _emit(builder, line, keyword, operands)
        except ParseError:
            raise
        except ConfigurationError as exc:
            raise line.error(exc.message) from exc

    return builder


def parse_assembly(text: str) -> Program:
    return assemble(text).program


def run_source(text: str, memory: Optional[Dict[int, int]] = None) -> CPUState:
    builder = assemble(text)
    for address, value in (memory or {}).items():
        builder.set_memory(address, value)
    builder.begin_execution()
    return builder.cpu
