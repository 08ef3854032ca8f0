from __future__ import annotations

import random

import pytest

from sheetrules.shared.a1 import (
    Extent,
    absolute_reference,
    column_index_to_label,
    column_label_to_index,
    column_range,
    extents_overlap,
    is_a1_extent,
    is_column_label,
    normalize_extent,
    parse_extent,
    split_a1,
)


def test_column_roundtrip() -> None:
    assert column_label_to_index("A") == 1
    assert column_label_to_index("Z") == 26
    assert column_label_to_index("AA") == 27
    assert column_label_to_index("ZZ") == 702
    assert column_index_to_label(1) == "A"
    assert column_index_to_label(27) == "AA"
    assert column_index_to_label(703) == "AAA"


def test_column_bijection_up_to_two_letters() -> None:
    for index in range(1, 703):
        assert column_label_to_index(column_index_to_label(index)) == index


def test_column_bijection_beyond_two_letters() -> None:
    for index in (703, 1000, 16384):
        assert column_label_to_index(column_index_to_label(index)) == index
    assert column_index_to_label(16384) == "XFD"


def test_column_conversion_with_custom_alphabet() -> None:
    alphabet = "XYZ"
    assert column_index_to_label(4, alphabet) == "XX"
    for index in range(1, 100):
        label = column_index_to_label(index, alphabet)
        assert column_label_to_index(label, alphabet) == index


def test_column_label_is_case_insensitive() -> None:
    assert column_label_to_index("ab") == 28


def test_column_label_rejects_invalid() -> None:
    with pytest.raises(ValueError, match="Invalid column label"):
        column_label_to_index("A1")
    with pytest.raises(ValueError, match="Column index must be positive"):
        column_index_to_label(0)


def test_split_a1() -> None:
    assert split_a1("b12") == ("B", 12)


def test_split_a1_rejects_invalid() -> None:
    with pytest.raises(ValueError, match="Invalid cell reference"):
        split_a1("1A")


def test_is_column_label() -> None:
    assert is_column_label("F")
    assert is_column_label("xfd")
    assert not is_column_label("F5")
    assert not is_column_label("ABCD")


def test_parse_extent_orders_corners() -> None:
    assert parse_extent("D6:B4") == Extent(min_row=4, min_col=2, max_row=6, max_col=4)
    assert normalize_extent("d6:b4") == "B4:D6"
    assert normalize_extent("h1:h1") == "H1"


def test_is_a1_extent() -> None:
    assert is_a1_extent("H1")
    assert is_a1_extent("H1:I3")
    assert not is_a1_extent("H")
    assert not is_a1_extent("H0")
    assert not is_a1_extent("H1:")


def test_column_range() -> None:
    assert column_range("f", 5, 1000) == "F5:F1000"
    assert column_range("F", 5, 3) == "F5:F5"


def test_absolute_reference_quotes_sheet() -> None:
    assert absolute_reference("Data", "B2:a1") == "'Data'!$A$1:$B$2"
    assert absolute_reference("Bob's", "H1") == "'Bob''s'!$H$1"


def test_extents_overlap_edges() -> None:
    base = parse_extent("B2:C3")
    assert extents_overlap(base, parse_extent("C3:D4"))
    assert not extents_overlap(base, parse_extent("D2:E3"))
    assert not extents_overlap(base, parse_extent("B4"))
    assert extents_overlap(base, parse_extent("A1:Z99"))


def _random_extent(rng: random.Random) -> Extent:
    top, bottom = sorted(rng.randint(1, 12) for _ in range(2))
    left, right = sorted(rng.randint(1, 12) for _ in range(2))
    return Extent(min_row=top, min_col=left, max_row=bottom, max_col=right)


def _cells(extent: Extent) -> set[tuple[int, int]]:
    return {
        (row, col)
        for row in range(extent.min_row, extent.max_row + 1)
        for col in range(extent.min_col, extent.max_col + 1)
    }


def test_extents_overlap_matches_shared_cells() -> None:
    rng = random.Random(20240607)
    for _ in range(500):
        left = _random_extent(rng)
        right = _random_extent(rng)
        expected = bool(_cells(left) & _cells(right))
        assert extents_overlap(left, right) is expected
        assert extents_overlap(right, left) is expected
