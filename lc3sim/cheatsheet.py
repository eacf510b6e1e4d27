from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from lc3sim.errors import ConfigurationError
from lc3sim.instructions import INSTRUCTION_SET, InstructionDef, get_instruction_executor, set_active_instruction_defs
from lc3sim.model import Program


logger = logging.getLogger(__name__)

Form = Tuple[str, ...]

# Operand layouts each LC-3 opcode can encode. A sheet may list a subset.
ENCODINGS: Dict[str, Tuple[Form, ...]] = {
    "ADD": (("reg", "reg", "reg"), ("reg", "reg", "imm5")),
    "AND": (("reg", "reg", "reg"), ("reg", "reg", "imm5")),
    "NOT": (("reg", "reg"),),
    "BR": (("label",),),
    "LD": (("reg", "label"),),
    "LDI": (("reg", "label"),),
    "ST": (("reg", "label"),),
    "STI": (("reg", "label"),),
    "TRAP": (("trapvect8",),),
}


@dataclass(frozen=True)
class SheetInstruction:
    mnemonic: str
    summary: str
    forms: Tuple[Form, ...]


@dataclass(frozen=True)
class CheatSheet:
    name: str
    description: str
    instructions: List[SheetInstruction]


class CheatSheetError(Exception):
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class CheatSheetValidationError(ConfigurationError):
    def __init__(self, message: str, index: int, text: str) -> None:
        super().__init__(message)
        self.index = index
        self.text = text


def _default_cheat_sheet_path() -> Path:
    return Path(__file__).resolve().parent / "assets" / "lc3_subset.json"


def _describe(form: Form) -> str:
    return ", ".join(form) or "(none)"


class CheatSheetManager:
    """Loads the instruction sheet and decides which opcodes and operand forms the emulator accepts."""

    def __init__(self, default_path: Optional[Path] = None) -> None:
        self.default_path = default_path or _default_cheat_sheet_path()
        self.active_sheet: Optional[CheatSheet] = None
        self.load_default()

    def load_default(self) -> CheatSheet:
        return self.load_from_path(self.default_path)

    def load_from_path(self, path: Path | str) -> CheatSheet:
        resolved = Path(path).expanduser().resolve()
        sheet = self._parse_sheet(self._load_json(resolved))
        self._activate_sheet(sheet)
        self.active_sheet = sheet
        logger.info("Loaded instruction sheet %r from %s", sheet.name, resolved)
        return sheet

    def validate_program(self, program: Program) -> None:
        for index, instr in enumerate(program.instructions):
            defn = INSTRUCTION_SET.get(instr.mnemonic)
            if defn is None:
                raise CheatSheetValidationError(f"Unknown instruction: {instr.mnemonic}", index, str(instr))
            form = tuple(instr.operand_kinds())
            if form not in defn.forms:
                raise CheatSheetValidationError(
                    f"{instr.mnemonic} does not support operands {_describe(form)} in this sheet",
                    index,
                    str(instr),
                )

    def _activate_sheet(self, sheet: CheatSheet) -> None:
        defs: List[InstructionDef] = []
        for instruction in sheet.instructions:
            executor = get_instruction_executor(instruction.mnemonic)
            if not executor:
                raise CheatSheetError(f"Instruction '{instruction.mnemonic}' is not implemented in the emulator.")
            defs.append(InstructionDef(instruction.mnemonic, instruction.summary, instruction.forms, executor))
        set_active_instruction_defs(defs)

    def _load_json(self, path: Path) -> dict:
        if not path.exists():
            raise CheatSheetError(f"Cheat sheet not found: {path}")
        try:
            with path.open("r", encoding="utf-8") as handle:
                return json.load(handle)
        except json.JSONDecodeError as exc:
            raise CheatSheetError(f"Invalid JSON in {path}: {exc}") from exc
        except OSError as exc:
            raise CheatSheetError(f"Failed to read cheat sheet: {exc}") from exc

    def _parse_sheet(self, data: object) -> CheatSheet:
        if not isinstance(data, dict):
            raise CheatSheetError("Cheat sheet must be a JSON object.")
        if data.get("schema_version") != 1:
            raise CheatSheetError(f"Unsupported schema_version: {data.get('schema_version')!r}")
        name = data.get("name")
        if not isinstance(name, str) or not name.strip():
            raise CheatSheetError("name is required and must be a string.")
        isa = data.get("isa")
        if not isinstance(isa, dict) or isa.get("arch") != "lc3" or isa.get("word_bits") != 16:
            raise CheatSheetError(f"Only 16-bit LC-3 sheets are supported, got isa {isa!r}")
        entries = data.get("instructions")
        if not isinstance(entries, list) or not entries:
            raise CheatSheetError("instructions must be a non-empty array.")

        instructions: List[SheetInstruction] = []
        for entry in entries:
            instruction = self._parse_instruction(entry)
            if any(seen.mnemonic == instruction.mnemonic for seen in instructions):
                raise CheatSheetError(f"Duplicate mnemonic in cheat sheet: {instruction.mnemonic}")
            instructions.append(instruction)
        return CheatSheet(name.strip(), str(data.get("description") or "").strip(), instructions)

    def _parse_instruction(self, entry: object) -> SheetInstruction:
        if not isinstance(entry, dict) or not isinstance(entry.get("mnemonic"), str):
            raise CheatSheetError(f"Instruction entry needs a mnemonic: {entry!r}")
        mnemonic = entry["mnemonic"].strip().upper()
        if mnemonic not in ENCODINGS:
            raise CheatSheetError(f"Instruction '{mnemonic}' is not implemented in the emulator.")
        summary = entry.get("summary")
        if not isinstance(summary, str) or not summary.strip():
            raise CheatSheetError(f"Instruction {mnemonic} is missing summary.")
        forms_data = entry.get("forms")
        if not isinstance(forms_data, list):
            raise CheatSheetError(f"Instruction {mnemonic} forms must be an array.")

        forms: List[Form] = []
        for form_data in forms_data:
            operands = form_data.get("operands") if isinstance(form_data, dict) else None
            if not isinstance(operands, list):
                raise CheatSheetError(f"Instruction {mnemonic} form must list its operands.")
            form = tuple(operands)
            # imm5 only fits ADD/AND, labels only fit BR and the loads/stores, trapvect8 only TRAP.
            if form not in ENCODINGS[mnemonic]:
                allowed = " | ".join(_describe(f) for f in ENCODINGS[mnemonic])
                raise CheatSheetError(f"{mnemonic} cannot take operands {_describe(form)} (expected {allowed})")
            forms.append(form)
        return SheetInstruction(mnemonic, summary.strip(), tuple(forms))


cheat_sheet_manager = CheatSheetManager()
