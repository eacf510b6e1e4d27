from __future__ import annotations

import logging
from typing import Optional, Union

from lc3sim.cheatsheet import cheat_sheet_manager
from lc3sim.cpu import CPUState, MEMORY_SIZE
from lc3sim.emulator import Emulator
from lc3sim.errors import ConfigurationError
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
    Operand,
    Program,
    Store,
    StoreIndirect,
    Trap,
)
from lc3sim.traps import HALT_VECTOR


logger = logging.getLogger(__name__)

RegisterArg = Union[Operand, int]
SourceArg = Union[Operand, int]


def _register_index(value: RegisterArg) -> int:
    if isinstance(value, Operand):
        if value.type != "reg":
            raise ConfigurationError(f"Expected a register, got {value.text}")
        return value.value
    return value


def _third_operand(value: SourceArg) -> Operand:
    # Bare ints are immediates; registers must be passed as R0..R7.
    if isinstance(value, Operand):
        return value
    return Operand.imm(value)


class ProgramBuilder:
    """Assembles a program one statement at a time and runs it.

    Each builder owns its program store, symbol table and machine state.
    Once ``begin_execution`` is called the program is frozen.

    Example::

        b = ProgramBuilder()
        b.ldi(R0, "INPUT")
        b.add(R0, R0, 1)
        b.sti(R0, "OUTPUT")
        b.halt()
        b.fill("INPUT", 0x3100)
        b.fill("OUTPUT", 0x3101)
        b.set_memory(0x3100, 41)
        b.end()
        assert b.get_memory(0x3101) == 42
    """

    def __init__(self, cpu: Optional[CPUState] = None) -> None:
        self.program = Program()
        self.cpu = cpu or CPUState()
        self.emulator: Optional[Emulator] = None

    @property
    def current(self) -> int:
        return len(self.program)

    # Boundary operations

    def append_instruction(self, instr: Instruction) -> int:
        return self.program.append(instr)

    def bind_position_label(self, name: str) -> None:
        logger.debug("Label %s -> instruction %d", name, self.current)
        self.program.labels.bind_position(name, self.current)

    def bind_constant_label(self, name: str, value: int) -> None:
        logger.debug("Label %s -> constant %d", name, value)
        self.program.labels.bind_constant(name, value)

    def begin_execution(self) -> int:
        if self.program.frozen:
            raise ConfigurationError("Program has already been executed")
        self.program.freeze()
        cheat_sheet_manager.validate_program(self.program)
        missing = [name for name in self.program.referenced_labels() if name not in self.program.labels]
        if missing:
            logger.warning("Program references unbound labels: %s", ", ".join(missing))
        self.emulator = Emulator(self.cpu, self.program)
        logger.info(
            "Executing %d instructions with %d labels",
            len(self.program),
            len(self.program.labels),
        )
        return self.emulator.run()

    def set_memory(self, address: int, value: int) -> None:
        self.cpu.write_mem(self._check_address(address), value)

    def get_memory(self, address: int) -> int:
        return self.cpu.read_mem(self._check_address(address))

    def get_register(self, register: RegisterArg) -> int:
        return self.cpu.get_reg(_register_index(register))

    @property
    def flag(self) -> int:
        return self.cpu.flag

    # LC-3 statements

    def orig(self, address: int) -> "ProgramBuilder":
        # Recorded only; instruction indices always start at 0.
        self.program.origin = self._check_address(address)
        return self

    def label(self, name: str) -> "ProgramBuilder":
        self.bind_position_label(name)
        return self

    def fill(self, name: str, value: int) -> "ProgramBuilder":
        self.bind_constant_label(name, value)
        return self

    def add(self, dest: RegisterArg, src1: RegisterArg, src2: SourceArg) -> int:
        operand = _third_operand(src2)
        if operand.type == "reg":
            return self.append_instruction(AddReg(_register_index(dest), _register_index(src1), operand.value))
        return self.append_instruction(AddImm(_register_index(dest), _register_index(src1), operand.value))

    def and_(self, dest: RegisterArg, src1: RegisterArg, src2: SourceArg) -> int:
        operand = _third_operand(src2)
        if operand.type == "reg":
            return self.append_instruction(AndReg(_register_index(dest), _register_index(src1), operand.value))
        return self.append_instruction(AndImm(_register_index(dest), _register_index(src1), operand.value))

    def not_(self, dest: RegisterArg, src: RegisterArg) -> int:
        return self.append_instruction(Not(_register_index(dest), _register_index(src)))

    def br(self, condition: str, label: str) -> int:
        return self.append_instruction(Branch(condition, label))

    def ld(self, dest: RegisterArg, label: str) -> int:
        return self.append_instruction(Load(_register_index(dest), label))

    def ldi(self, dest: RegisterArg, label: str) -> int:
        return self.append_instruction(LoadIndirect(_register_index(dest), label))

    def st(self, src: RegisterArg, label: str) -> int:
        return self.append_instruction(Store(_register_index(src), label))

    def sti(self, src: RegisterArg, label: str) -> int:
        return self.append_instruction(StoreIndirect(_register_index(src), label))

    def ldr(self, dest: RegisterArg, base: RegisterArg, offset: int) -> int:
        raise ConfigurationError("LDR (base+offset addressing) is not implemented")

    def str_(self, src: RegisterArg, base: RegisterArg, offset: int) -> int:
        raise ConfigurationError("STR (base+offset addressing) is not implemented")

    def trap(self, vector: int) -> int:
        return self.append_instruction(Trap(vector))

    def halt(self) -> int:
        return self.trap(HALT_VECTOR)

    def end(self) -> int:
        return self.begin_execution()

    def _check_address(self, address: int) -> int:
        if isinstance(address, bool) or not isinstance(address, int) or not 0 <= address < MEMORY_SIZE:
            raise ConfigurationError(f"Address out of range: {address!r}")
        return address
