from __future__ import annotations

import logging
from typing import Dict, Iterator, Tuple

from lc3sim.cpu import to_signed16
from lc3sim.errors import ConfigurationError, UnboundLabelError


logger = logging.getLogger(__name__)

WORD_MIN = -0x8000
WORD_MAX = 0xFFFF


class SymbolTable:
    """Label name -> 16-bit value.

    Branch targets (instruction positions) and ``.FILL`` constants share one
    mapping with no kind tag; the instruction that reads a label decides
    whether the value is an index, an address or plain data. Rebinding a name
    overwrites the previous value.
    """

    def __init__(self) -> None:
        self._values: Dict[str, int] = {}
        self.frozen = False

    def __contains__(self, name: object) -> bool:
        return name in self._values

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def items(self) -> Iterator[Tuple[str, int]]:
        return iter(list(self._values.items()))

    def get(self, name: str) -> int | None:
        return self._values.get(name)

    def bind_position(self, name: str, index: int) -> None:
        self._bind(name, index)

    def bind_constant(self, name: str, value: int) -> None:
        if not WORD_MIN <= value <= WORD_MAX:
            raise ConfigurationError(f"Value {value} for label {name} does not fit in 16 bits")
        self._bind(name, value)

    def resolve(self, name: str) -> int:
        value = self._values.get(name)
        if value is None:
            raise UnboundLabelError(name)
        return value

    def store(self, name: str, value: int) -> None:
        if name not in self._values:
            raise UnboundLabelError(name)
        self._values[name] = to_signed16(value)

    def freeze(self) -> None:
        self.frozen = True

    def snapshot(self) -> Dict[str, int]:
        return dict(self._values)

    def restore(self, values: Dict[str, int]) -> None:
        """Put back values taken by ``snapshot``, undoing ST writes. Works on a frozen table."""
        self._values = dict(values)

    def _bind(self, name: str, value: int) -> None:
        if self.frozen:
            raise ConfigurationError(f"Cannot bind label {name} after execution has started")
        if not name:
            raise ConfigurationError("Label name must not be empty")
        if name in self._values:
            logger.debug("Rebinding label %s (%d -> %d)", name, self._values[name], to_signed16(value))
        self._values[name] = to_signed16(value)
