import pytest

from lc3sim.cheatsheet import cheat_sheet_manager


@pytest.fixture(autouse=True)
def _reset_cheat_sheet():
    cheat_sheet_manager.load_default()
    yield
    cheat_sheet_manager.load_default()


# Longest run of consecutive 0 bits in mem[x3100], written to mem[x3101].
COUNT_ZERO_RUN_SOURCE = """
        .ORIG x3000
        LDI   R0, INPUT
        ADD   R2, R2, #8
        ADD   R2, R2, #8      ; R2 counts the 16 bits down
        LD    R5, MASK
AGAIN   ADD   R2, R2, #0
        BRz   OVER
        AND   R1, R0, R5
        BRz   FOUND0
        ADD   R0, R0, R0
        AND   R4, R4, #0
        ADD   R2, R2, #-1
        BRnzp AGAIN
FOUND0  ADD   R0, R0, R0
        ADD   R4, R4, #1
        NOT   R7, R3
        ADD   R7, R7, #1
        ADD   R6, R4, R7      ; current run - best run
        BRp   NEW
        ADD   R2, R2, #-1
        BRnzp AGAIN
NEW     AND   R3, R3, #0
        ADD   R3, R4, R3
        ADD   R2, R2, #-1
        BRnzp AGAIN
OVER    STI   R3, OUTPUT
        TRAP  x25
INPUT   .FILL x3100
MASK    .FILL x8000
OUTPUT  .FILL x3101
        .END
"""

# Number of "01" bit pairs in mem[x3100], written to mem[x3101].
COUNT_01_SOURCE = """
        .ORIG x3000
        LDI   R0, IADDR
        LD    R4, MASK
        ADD   R3, R3, #8
        ADD   R3, R3, #8
AGAIN:  ADD   R3, R3, #0
        BRz   END
        AND   R1, R0, R4
        BRz   FOUND0
        ADD   R0, R0, R0
        ADD   R3, R3, #-1
        BR    AGAIN
FOUND0: ADD   R0, R0, R0
        ADD   R3, R3, #-1
        AND   R1, R0, R4
        BRnp  YES
        BR    AGAIN
YES:    ADD   R2, R2, #1
        ADD   R0, R0, R0
        ADD   R3, R3, #-1
        BR    AGAIN
END:    STI   R2, OADDR
        HALT
MASK    .FILL x8000
IADDR   .FILL x3100
OADDR   .FILL x3101
        .END
"""


@pytest.fixture
def count_zero_run_source():
    return COUNT_ZERO_RUN_SOURCE


@pytest.fixture
def count_01_source():
    return COUNT_01_SOURCE
