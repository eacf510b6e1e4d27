import json
from pathlib import Path

import pytest

from lc3sim.cheatsheet import CheatSheetError, CheatSheetValidationError, cheat_sheet_manager
from lc3sim.cpu import CPUState
from lc3sim.emulator import Emulator
from lc3sim.instructions import INSTRUCTION_SET
from lc3sim.parser import parse_assembly, run_source


def _write_sheet(path: Path, data: dict) -> None:
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")


def _sheet(*instructions) -> dict:
    return {
        "schema_version": 1,
        "name": "Test",
        "isa": {"arch": "lc3", "word_bits": 16},
        "instructions": list(instructions),
    }


def test_default_sheet_executes_minimal_program():
    cheat_sheet_manager.load_default()
    program = parse_assembly("ADD R0, R0, #1\nADD R0, R0, #2\nHALT\n")
    cheat_sheet_manager.validate_program(program)

    cpu = CPUState()
    emulator = Emulator(cpu, program)
    for _ in range(5):
        outcome = emulator.step()
        if outcome.error:
            pytest.fail(outcome.error.message)
        if outcome.halted:
            break
    assert cpu.get_reg(0) == 3


def test_default_sheet_activates_lc3_operand_forms():
    assert INSTRUCTION_SET["ADD"].forms == (("reg", "reg", "reg"), ("reg", "reg", "imm5"))
    assert INSTRUCTION_SET["BR"].forms == (("label",),)
    assert INSTRUCTION_SET["TRAP"].forms == (("trapvect8",),)


def test_add_only_sheet_rejects_not(tmp_path: Path):
    sheet_path = tmp_path / "add_only.json"
    _write_sheet(
        sheet_path,
        _sheet(
            {"mnemonic": "add", "summary": "Add", "forms": [{"operands": ["reg", "reg", "imm5"]}]},
            {"mnemonic": "trap", "summary": "Trap", "forms": [{"operands": ["trapvect8"]}]},
        ),
    )
    cheat_sheet_manager.load_from_path(sheet_path)
    program = parse_assembly("ADD R0, R0, #1\nNOT R1, R0\nHALT\n")
    with pytest.raises(CheatSheetValidationError) as exc:
        cheat_sheet_manager.validate_program(program)
    assert "Unknown instruction: NOT" in exc.value.message
    assert exc.value.index == 1


def test_sheet_restricts_operand_forms(tmp_path: Path):
    sheet_path = tmp_path / "imm_only.json"
    _write_sheet(
        sheet_path,
        _sheet(
            {"mnemonic": "ADD", "summary": "Add", "forms": [{"operands": ["reg", "reg", "imm5"]}]},
            {"mnemonic": "TRAP", "summary": "Trap", "forms": [{"operands": ["trapvect8"]}]},
        ),
    )
    cheat_sheet_manager.load_from_path(sheet_path)
    with pytest.raises(CheatSheetValidationError, match="does not support operands reg, reg, reg"):
        run_source("ADD R0, R0, R1\nHALT\n")


def test_sheet_with_unimplemented_mnemonic_is_rejected(tmp_path: Path):
    sheet_path = tmp_path / "ldr.json"
    _write_sheet(sheet_path, _sheet({"mnemonic": "LDR", "summary": "Base+offset load", "forms": []}))
    with pytest.raises(CheatSheetError, match="not implemented"):
        cheat_sheet_manager.load_from_path(sheet_path)
    assert cheat_sheet_manager.active_sheet.name == "LC-3 teaching subset"
    assert "ADD" in INSTRUCTION_SET


@pytest.mark.parametrize(
    "data",
    [
        [],
        {**_sheet({"mnemonic": "ADD", "summary": "Add", "forms": []}), "schema_version": 2},
        {**_sheet({"mnemonic": "ADD", "summary": "Add", "forms": []}), "isa": {"arch": "x86", "word_bits": 16}},
        {**_sheet({"mnemonic": "ADD", "summary": "Add", "forms": []}), "isa": {"arch": "lc3", "word_bits": 32}},
        _sheet(),
        _sheet({"mnemonic": "ADD", "forms": []}),
        _sheet({"mnemonic": "ADD", "summary": "Add", "forms": [{"operands": ["mem16"]}]}),
        _sheet({"mnemonic": "ADD", "summary": "Add", "forms": [{"operands": []}]}),
        _sheet({"mnemonic": "ADD", "summary": "Add", "forms": ["reg"]}),
        _sheet(
            {"mnemonic": "ADD", "summary": "Add", "forms": []},
            {"mnemonic": "add", "summary": "Again", "forms": []},
        ),
    ],
)
def test_invalid_sheets_are_rejected(tmp_path: Path, data):
    sheet_path = tmp_path / "bad.json"
    _write_sheet(sheet_path, data)
    with pytest.raises(CheatSheetError):
        cheat_sheet_manager.load_from_path(sheet_path)


def test_missing_and_malformed_files(tmp_path: Path):
    with pytest.raises(CheatSheetError, match="not found"):
        cheat_sheet_manager.load_from_path(tmp_path / "absent.json")
    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    with pytest.raises(CheatSheetError, match="Invalid JSON"):
        cheat_sheet_manager.load_from_path(broken)



@pytest.mark.parametrize(
    ("mnemonic", "operands"),
    [
        ("TRAP", ["imm5"]),
        ("NOT", ["reg", "imm5"]),
        ("LD", ["reg", "imm5"]),
        ("BR", ["reg", "label"]),
        ("ADD", ["reg", "reg", "label"]),
        ("STI", ["trapvect8"]),
    ],
)
def test_forms_must_match_the_opcode_encoding(tmp_path: Path, mnemonic, operands):
    sheet_path = tmp_path / "mismatch.json"
    _write_sheet(sheet_path, _sheet({"mnemonic": mnemonic, "summary": "x", "forms": [{"operands": operands}]}))
    with pytest.raises(CheatSheetError, match=f"{mnemonic} cannot take operands"):
        cheat_sheet_manager.load_from_path(sheet_path)
    assert cheat_sheet_manager.active_sheet.name == "LC-3 teaching subset"
