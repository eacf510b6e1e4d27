from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List


REGISTER_COUNT = 8
MEMORY_SIZE = 0x10000


def to_signed16(value: int) -> int:
    value &= 0xFFFF
    return value - 0x10000 if value & 0x8000 else value


def to_unsigned16(value: int) -> int:
    return value & 0xFFFF


@dataclass
class CPUState:
    registers: List[int] = field(default_factory=list)
    memory: List[int] = field(default_factory=list)
    flag: int = 0

    def __post_init__(self) -> None:
        if not self.registers or not self.memory:
            self.reset()

    def reset(self) -> None:
        self.registers = [0] * REGISTER_COUNT
        self.memory = [0] * MEMORY_SIZE
        self.flag = 0

    def get_reg(self, index: int) -> int:
        return self.registers[index]

    def set_reg(self, index: int, value: int) -> int:
        value = to_signed16(value)
        self.registers[index] = value
        return value

    def read_mem(self, addr: int) -> int:
        return self.memory[to_unsigned16(addr)]

    def write_mem(self, addr: int, value: int) -> None:
        self.memory[to_unsigned16(addr)] = to_signed16(value)

    def load_data(self, data: Dict[int, int]) -> None:
        for addr, value in data.items():
            self.write_mem(addr, value)
