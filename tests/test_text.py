from __future__ import annotations

import pytest

from textlsp.utils.text import from_utf16_column, prefix_at, to_utf16_column, word_at

BOLD_A = "\U0001D400"


def test_columns_count_surrogate_pairs() -> None:
    line = f"J{BOLD_A}xy"
    assert to_utf16_column(line, 2) == 3
    assert from_utf16_column(line, 3) == 2
    assert from_utf16_column(line, 50) == len(line)


def test_word_at_reports_utf16_span() -> None:
    assert word_at([f"{BOLD_A} Type"], 0, 4) == (3, 7, "Type")
    assert word_at(["a b"], 0, 1) == (0, 1, "a")
    assert word_at(["a  b"], 0, 2) is None
    assert word_at(["a"], 3, 0) is None


@pytest.mark.parametrize(
    "line, column, expected",
    [
        (f"J{BOLD_A}xy", 3, f"J{BOLD_A}"),
        (f"J{BOLD_A}xy", 1, "J"),
        (f"{BOLD_A} Typ", 5, "Ty"),
        ("Type", 0, ""),
        ("  ", 1, ""),
    ],
)
def test_prefix_at_slices_by_code_points(line: str, column: int, expected: str) -> None:
    assert prefix_at([line], 0, column) == expected
