from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Tuple

from lc3sim.cpu import CPUState
from lc3sim.errors import EmulationError, UnboundLabelError
from lc3sim.model import (
    AddImm,
    AddReg,
    AndImm,
    AndReg,
    Branch,
    Instruction,
    Load,
    LoadIndirect,
    Not,
    Program,
    Store,
    StoreIndirect,
    Trap,
)
from lc3sim.traps import get_trap


@dataclass
class ExecResult:
    next_index: int | None = None
    halt: bool = False


Executor = Callable[[CPUState, Instruction, Program, int], ExecResult]


@dataclass(frozen=True)
class InstructionDef:
    mnemonic: str
    summary: str
    forms: Tuple[Tuple[str, ...], ...]
    executor: Executor


INSTRUCTION_IMPLS: Dict[str, Executor] = {}
INSTRUCTION_SET: Dict[str, InstructionDef] = {}


def register_instruction_impl(mnemonic: str, executor: Executor) -> None:
    INSTRUCTION_IMPLS[mnemonic.upper()] = executor


def set_active_instruction_defs(defs: List[InstructionDef]) -> None:
    INSTRUCTION_SET.clear()
    for defn in defs:
        INSTRUCTION_SET[defn.mnemonic.upper()] = defn


def get_instruction_executor(mnemonic: str) -> Executor | None:
    return INSTRUCTION_IMPLS.get(mnemonic.upper())


def condition_matches(condition: str, flag: int) -> bool:
    if not condition:
        return True
    if flag < 0:
        return "n" in condition
    if flag == 0:
        return "z" in condition
    return "p" in condition


def _unexpected(instr: Instruction, index: int) -> EmulationError:
    return EmulationError(f"Unsupported instruction form: {type(instr).__name__}", index, str(instr))


def _resolve(program: Program, label: str, instr: Instruction, index: int) -> int:
    value = program.labels.get(label)
    if value is None:
        raise UnboundLabelError(label, index, str(instr))
    return value


def _set_result(cpu: CPUState, dest: int, value: int) -> None:
    cpu.flag = cpu.set_reg(dest, value)


def exec_add(cpu: CPUState, instr: Instruction, program: Program, index: int) -> ExecResult:
    if isinstance(instr, AddReg):
        _set_result(cpu, instr.dest, cpu.get_reg(instr.src1) + cpu.get_reg(instr.src2))
    elif isinstance(instr, AddImm):
        _set_result(cpu, instr.dest, cpu.get_reg(instr.src1) + instr.imm)
    else:
        raise _unexpected(instr, index)
    return ExecResult()


def exec_and(cpu: CPUState, instr: Instruction, program: Program, index: int) -> ExecResult:
    if isinstance(instr, AndReg):
        _set_result(cpu, instr.dest, cpu.get_reg(instr.src1) & cpu.get_reg(instr.src2))
    elif isinstance(instr, AndImm):
        _set_result(cpu, instr.dest, cpu.get_reg(instr.src1) & instr.imm)
    else:
        raise _unexpected(instr, index)
    return ExecResult()


def exec_not(cpu: CPUState, instr: Instruction, program: Program, index: int) -> ExecResult:
    if not isinstance(instr, Not):
        raise _unexpected(instr, index)
    _set_result(cpu, instr.dest, ~cpu.get_reg(instr.src))
    return ExecResult()


def exec_br(cpu: CPUState, instr: Instruction, program: Program, index: int) -> ExecResult:
    if not isinstance(instr, Branch):
        raise _unexpected(instr, index)
    target = _resolve(program, instr.label, instr, index)
    if condition_matches(instr.condition, cpu.flag):
        return ExecResult(next_index=target)
    return ExecResult()


def exec_ld(cpu: CPUState, instr: Instruction, program: Program, index: int) -> ExecResult:
    if not isinstance(instr, Load):
        raise _unexpected(instr, index)
    _set_result(cpu, instr.reg, _resolve(program, instr.label, instr, index))
    return ExecResult()


def exec_ldi(cpu: CPUState, instr: Instruction, program: Program, index: int) -> ExecResult:
    if not isinstance(instr, LoadIndirect):
        raise _unexpected(instr, index)
    addr = _resolve(program, instr.label, instr, index)
    _set_result(cpu, instr.reg, cpu.read_mem(addr))
    return ExecResult()


def exec_st(cpu: CPUState, instr: Instruction, program: Program, index: int) -> ExecResult:
    if not isinstance(instr, Store):
        raise _unexpected(instr, index)
    _resolve(program, instr.label, instr, index)
    program.labels.store(instr.label, cpu.get_reg(instr.reg))
    return ExecResult()


def exec_sti(cpu: CPUState, instr: Instruction, program: Program, index: int) -> ExecResult:
    if not isinstance(instr, StoreIndirect):
        raise _unexpected(instr, index)
    addr = _resolve(program, instr.label, instr, index)
    cpu.write_mem(addr, cpu.get_reg(instr.reg))
    return ExecResult()


def exec_trap(cpu: CPUState, instr: Instruction, program: Program, index: int) -> ExecResult:
    if not isinstance(instr, Trap):
        raise _unexpected(instr, index)
    return ExecResult(halt=get_trap(instr.vector).halts)


register_instruction_impl("ADD", exec_add)
register_instruction_impl("AND", exec_and)
register_instruction_impl("NOT", exec_not)
register_instruction_impl("BR", exec_br)
register_instruction_impl("LD", exec_ld)
register_instruction_impl("LDI", exec_ldi)
register_instruction_impl("ST", exec_st)
register_instruction_impl("STI", exec_sti)
register_instruction_impl("TRAP", exec_trap)
