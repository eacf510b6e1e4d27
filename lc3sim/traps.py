from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional


HALT_VECTOR = 25


@dataclass(frozen=True)
class TrapDef:
    vector: int
    name: str
    operand: str
    description: str
    halts: bool = False


TRAPS: Dict[int, TrapDef] = {}


def register_trap(defn: TrapDef) -> None:
    TRAPS[defn.vector] = defn


def get_trap(vector: int) -> Optional[TrapDef]:
    return TRAPS.get(vector)


def get_trap_defs() -> List[TrapDef]:
    return list(TRAPS.values())


def find_trap_operand(text: str) -> Optional[TrapDef]:
    """Look up a trap by the operand written after ``TRAP`` (``x25`` for HALT)."""
    wanted = text.strip().lower()
    for defn in TRAPS.values():
        if defn.operand.lower() == wanted:
            return defn
    return None


register_trap(
    TrapDef(
        vector=HALT_VECTOR,
        name="HALT",
        operand="x25",
        description="Stop the machine. No further instructions execute.",
        halts=True,
    )
)
