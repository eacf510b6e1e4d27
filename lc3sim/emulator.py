from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from lc3sim.cpu import CPUState
from lc3sim.errors import EmulationError, OutOfRangeError
from lc3sim.instructions import ExecResult, INSTRUCTION_SET
from lc3sim.model import Instruction, Program


logger = logging.getLogger(__name__)


@dataclass
class StepOutcome:
    halted: bool = False
    error: Optional[EmulationError] = None


class Emulator:
    """Fetch/execute loop over a frozen program.

    ``step`` reports faults through ``StepOutcome.error``; ``run`` raises them.
    Either way a fault ends the run: the emulator is left halted. ``reset``
    restores the label values the program started with, so ST writes do not
    leak into the next run.
    """

    def __init__(self, cpu: CPUState, program: Program) -> None:
        self.cpu = cpu
        self.program = program
        self.index = 0
        self.steps = 0
        self.halted = False
        self.error: Optional[EmulationError] = None
        self._previous: Optional[Tuple[int, Instruction]] = None
        self._initial_labels = program.labels.snapshot()

    def reset(self) -> None:
        self.cpu.reset()
        self.program.labels.restore(self._initial_labels)
        self.index = 0
        self.steps = 0
        self.halted = False
        self.error = None
        self._previous = None

    def step(self) -> StepOutcome:
        if self.error:
            return StepOutcome(error=self.error)
        if self.halted:
            return StepOutcome(halted=True)

        index = self.index
        try:
            instr = self.program.fetch(index)
        except OutOfRangeError as exc:
            return self._fault(self._with_source(exc))

        defn = INSTRUCTION_SET.get(instr.mnemonic)
        if not defn:
            return self._fault(EmulationError(f"Unknown instruction: {instr.mnemonic}", index, str(instr)))

        try:
            result: ExecResult = defn.executor(self.cpu, instr, self.program, index)
        except EmulationError as exc:
            return self._fault(exc)

        self.steps += 1
        self._previous = (index, instr)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "step %d @%d %-16s regs=%s flag=%d",
                self.steps,
                index,
                instr,
                self.cpu.registers,
                self.cpu.flag,
            )

        if result.halt:
            self.halted = True
            logger.info("Halted at instruction %d after %d steps", index, self.steps)
            return StepOutcome(halted=True)

        self.index = index + 1 if result.next_index is None else result.next_index
        return StepOutcome()

    def run(self) -> int:
        while True:
            outcome = self.step()
            if outcome.error:
                raise outcome.error
            if outcome.halted:
                return self.steps

    def _with_source(self, exc: OutOfRangeError) -> OutOfRangeError:
        if self._previous is None:
            return exc
        source_index, source = self._previous
        return OutOfRangeError(exc.target, exc.size, source_index, str(source))

    def _fault(self, error: EmulationError) -> StepOutcome:
        self.halted = True
        self.error = error
        logger.warning("Execution aborted: %s", error)
        return StepOutcome(error=error)
