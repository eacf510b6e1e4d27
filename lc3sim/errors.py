from __future__ import annotations

from typing import Optional


class ConfigurationError(Exception):
    """Raised while a program is being assembled: bad operand, unsupported form or trap."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class EmulationError(Exception):
    def __init__(self, message: str, index: Optional[int] = None, text: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.index = index
        self.text = text

    def __str__(self) -> str:
        if self.index is None:
            return self.message
        if self.text:
            return f"{self.message} (instruction {self.index}: {self.text})"
        return f"{self.message} (instruction {self.index})"


class UnboundLabelError(EmulationError):
    def __init__(self, label: str, index: Optional[int] = None, text: str = "") -> None:
        super().__init__(f"Unbound label: {label}", index, text)
        self.label = label


class OutOfRangeError(EmulationError):
    """Control reached ``target``, which holds no instruction.

    ``index``/``text`` name the instruction that transferred control there
    (a branch, or the last instruction when the program runs off its end).
    """

    def __init__(self, target: int, size: int, index: Optional[int] = None, text: str = "") -> None:
        super().__init__(f"No instruction at index {target} (program has {size})", index, text)
        self.target = target
        self.size = size
