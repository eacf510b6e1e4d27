from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar, List, Optional

from lc3sim.cpu import REGISTER_COUNT
from lc3sim.errors import ConfigurationError, OutOfRangeError
from lc3sim.symbols import SymbolTable
from lc3sim.traps import get_trap


IMM5_MIN = -16
IMM5_MAX = 15

# Canonical n, z, p ordering; "" is the unconditional BR.
BRANCH_CONDITIONS = ("", "n", "z", "p", "nz", "zp", "np", "nzp")


@dataclass(frozen=True)
class Operand:
    type: str  # reg, imm
    value: int
    text: str

    @classmethod
    def reg(cls, index: int) -> "Operand":
        _check_register(index)
        return cls(type="reg", value=index, text=f"R{index}")

    @classmethod
    def imm(cls, value: int) -> "Operand":
        _check_imm5(value)
        return cls(type="imm", value=value, text=f"#{value}")


def _check_register(index: int) -> None:
    if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < REGISTER_COUNT:
        raise ConfigurationError(f"Invalid register: {index!r}")


def _check_imm5(value: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or not IMM5_MIN <= value <= IMM5_MAX:
        raise ConfigurationError(f"Immediate {value!r} outside [{IMM5_MIN}, {IMM5_MAX}]")


def _check_label(label: str) -> None:
    if not isinstance(label, str) or not label:
        raise ConfigurationError(f"Invalid label: {label!r}")


R0, R1, R2, R3, R4, R5, R6, R7 = (Operand.reg(i) for i in range(REGISTER_COUNT))


def normalize_condition(condition: str) -> str:
    letters = condition.lower()
    if any(ch not in "nzp" for ch in letters) or len(set(letters)) != len(letters):
        raise ConfigurationError(f"Invalid branch condition: {condition!r}")
    return "".join(ch for ch in "nzp" if ch in letters)


class Instruction:
    """Base for the closed set of instruction forms."""

    mnemonic: ClassVar[str] = ""

    def operand_kinds(self) -> List[str]:
        raise NotImplementedError


@dataclass(frozen=True)
class _ThreeRegister(Instruction):
    dest: int
    src1: int
    src2: int

    def __post_init__(self) -> None:
        for index in (self.dest, self.src1, self.src2):
            _check_register(index)

    def operand_kinds(self) -> List[str]:
        return ["reg", "reg", "reg"]

    def __str__(self) -> str:
        return f"{self.mnemonic} R{self.dest}, R{self.src1}, R{self.src2}"


@dataclass(frozen=True)
class _RegisterImmediate(Instruction):
    dest: int
    src1: int
    imm: int

    def __post_init__(self) -> None:
        _check_register(self.dest)
        _check_register(self.src1)
        _check_imm5(self.imm)

    def operand_kinds(self) -> List[str]:
        return ["reg", "reg", "imm5"]

    def __str__(self) -> str:
        return f"{self.mnemonic} R{self.dest}, R{self.src1}, #{self.imm}"


@dataclass(frozen=True)
class _RegisterLabel(Instruction):
    reg: int
    label: str

    def __post_init__(self) -> None:
        _check_register(self.reg)
        _check_label(self.label)

    def operand_kinds(self) -> List[str]:
        return ["reg", "label"]

    def __str__(self) -> str:
        return f"{self.mnemonic} R{self.reg}, {self.label}"


class AddReg(_ThreeRegister):
    mnemonic = "ADD"


class AddImm(_RegisterImmediate):
    mnemonic = "ADD"


class AndReg(_ThreeRegister):
    mnemonic = "AND"


class AndImm(_RegisterImmediate):
    mnemonic = "AND"


@dataclass(frozen=True)
class Not(Instruction):
    mnemonic = "NOT"

    dest: int
    src: int

    def __post_init__(self) -> None:
        _check_register(self.dest)
        _check_register(self.src)

    def operand_kinds(self) -> List[str]:
        return ["reg", "reg"]

    def __str__(self) -> str:
        return f"NOT R{self.dest}, R{self.src}"


@dataclass(frozen=True)
class Branch(Instruction):
    mnemonic = "BR"

    condition: str
    label: str

    def __post_init__(self) -> None:
        # frozen dataclass: normalise through object.__setattr__
        object.__setattr__(self, "condition", normalize_condition(self.condition))
        _check_label(self.label)

    def operand_kinds(self) -> List[str]:
        return ["label"]

    def __str__(self) -> str:
        return f"BR{self.condition} {self.label}"


class Load(_RegisterLabel):
    """LD: the label's value itself goes into the register, memory is not read."""

    mnemonic = "LD"


class LoadIndirect(_RegisterLabel):
    mnemonic = "LDI"


class Store(_RegisterLabel):
    """ST: the register value overwrites the label's entry in the symbol table."""

    mnemonic = "ST"


class StoreIndirect(_RegisterLabel):
    mnemonic = "STI"


@dataclass(frozen=True)
class Trap(Instruction):
    mnemonic = "TRAP"

    vector: int

    def __post_init__(self) -> None:
        if isinstance(self.vector, bool) or not isinstance(self.vector, int) or get_trap(self.vector) is None:
            raise ConfigurationError(f"Unsupported trap vector: {self.vector!r}")

    def operand_kinds(self) -> List[str]:
        return ["trapvect8"]

    def __str__(self) -> str:
        return f"TRAP {get_trap(self.vector).operand}"


@dataclass
class Program:
    instructions: List[Instruction] = field(default_factory=list)
    labels: SymbolTable = field(default_factory=SymbolTable)
    origin: Optional[int] = None
    frozen: bool = False

    def __len__(self) -> int:
        return len(self.instructions)

    def append(self, instr: Instruction) -> int:
        if self.frozen:
            raise ConfigurationError("Cannot append instructions after execution has started")
        if not isinstance(instr, Instruction) or type(instr) in _ABSTRACT_FORMS:
            raise ConfigurationError(f"Not an instruction: {instr!r}")
        self.instructions.append(instr)
        return len(self.instructions) - 1

    def fetch(self, index: int) -> Instruction:
        if not 0 <= index < len(self.instructions):
            raise OutOfRangeError(index, len(self.instructions))
        return self.instructions[index]

    def freeze(self) -> None:
        self.frozen = True
        self.labels.freeze()

    def referenced_labels(self) -> List[str]:
        names: List[str] = []
        for instr in self.instructions:
            label = getattr(instr, "label", None)
            if label is not None and label not in names:
                names.append(label)
        return names


_ABSTRACT_FORMS = (Instruction, _ThreeRegister, _RegisterImmediate, _RegisterLabel)
