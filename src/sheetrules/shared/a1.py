from __future__ import annotations

from dataclasses import dataclass
import re

_A1_PATTERN = re.compile(r"^[A-Za-z]{1,3}[1-9][0-9]*$")
_A1_RANGE_PATTERN = re.compile(r"^[A-Za-z]{1,3}[1-9][0-9]*:[A-Za-z]{1,3}[1-9][0-9]*$")
_COLUMN_LABEL_PATTERN = re.compile(r"^[A-Za-z]{1,3}$")
_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"


@dataclass(frozen=True)
class Extent:
    """Rectangular cell extent with inclusive 1-based bounds."""

    min_row: int
    min_col: int
    max_row: int
    max_col: int

    @property
    def rows(self) -> int:
        return self.max_row - self.min_row + 1

    @property
    def cols(self) -> int:
        return self.max_col - self.min_col + 1

    @property
    def is_single_cell(self) -> bool:
        return self.rows == 1 and self.cols == 1

    @property
    def a1(self) -> str:
        """Return the normalized A1 notation (a cell or a range)."""
        start = f"{column_index_to_label(self.min_col)}{self.min_row}"
        if self.is_single_cell:
            return start
        return f"{start}:{column_index_to_label(self.max_col)}{self.max_row}"


def split_a1(value: str) -> tuple[str, int]:
    """Split A1 notation into normalized (column_label, row_index)."""
    if not _A1_PATTERN.match(value):
        raise ValueError(f"Invalid cell reference: {value}")
    idx = 0
    for index, char in enumerate(value):
        if char.isdigit():
            idx = index
            break
    column = value[:idx].upper()
    row = int(value[idx:])
    return column, row


def is_column_label(value: str) -> bool:
    """Return True when value is an Excel-style column label (A..ZZZ)."""
    return bool(_COLUMN_LABEL_PATTERN.match(value.strip()))


def column_label_to_index(label: str, alphabet: str = _ALPHABET) -> int:
    """Convert Excel-style column label (A/AA) to 1-based index.

    The conversion is bijective base-N numeration over ``alphabet``; the
    default alphabet gives the usual A=1, Z=26, AA=27 scheme.
    """
    normalized = label.strip().upper()
    if alphabet is _ALPHABET and not _COLUMN_LABEL_PATTERN.match(normalized):
        raise ValueError(f"Invalid column label: {label}")
    base = len(alphabet)
    index = 0
    for char in normalized:
        digit = alphabet.find(char)
        if digit < 0:
            raise ValueError(f"Invalid column label: {label}")
        index = index * base + digit + 1
    return index


def column_index_to_label(index: int, alphabet: str = _ALPHABET) -> str:
    """Convert 1-based column index to Excel-style column label."""
    if index < 1:
        raise ValueError("Column index must be positive.")
    base = len(alphabet)
    chunks: list[str] = []
    current = index
    while current > 0:
        current -= 1
        chunks.append(alphabet[current % base])
        current //= base
    return "".join(reversed(chunks))


def normalize_range(value: str) -> str:
    """Validate and normalize an A1 range string."""
    candidate = value.strip()
    if not _A1_RANGE_PATTERN.match(candidate):
        raise ValueError(f"Invalid range reference: {value}")
    start, end = candidate.split(":", maxsplit=1)
    return f"{start.upper()}:{end.upper()}"


def parse_extent(value: str) -> Extent:
    """Parse an A1 cell or range (either corner order) into an Extent."""
    candidate = value.strip()
    if ":" in candidate:
        start_ref, end_ref = normalize_range(candidate).split(":", maxsplit=1)
    else:
        start_ref = end_ref = candidate
    start_col, start_row = split_a1(start_ref)
    end_col, end_row = split_a1(end_ref)
    start_idx = column_label_to_index(start_col)
    end_idx = column_label_to_index(end_col)
    return Extent(
        min_row=min(start_row, end_row),
        min_col=min(start_idx, end_idx),
        max_row=max(start_row, end_row),
        max_col=max(start_idx, end_idx),
    )


def normalize_extent(value: str) -> str:
    """Return canonical A1 text for a cell or range."""
    return parse_extent(value).a1


def is_a1_extent(value: str) -> bool:
    """Return True when value is a valid A1 cell or range."""
    candidate = value.strip()
    return bool(_A1_PATTERN.match(candidate) or _A1_RANGE_PATTERN.match(candidate))


def extents_overlap(left: Extent, right: Extent) -> bool:
    """Return True when two extents share at least one cell.

    Uses half-open interval intersection on both axes: [min, max + 1).
    """
    rows_intersect = left.min_row < right.max_row + 1 and right.min_row < left.max_row + 1
    cols_intersect = left.min_col < right.max_col + 1 and right.min_col < left.max_col + 1
    return rows_intersect and cols_intersect


def column_range(label: str, first_row: int, last_row: int) -> str:
    """Build an A1 range covering one column between two rows."""
    column = label.strip().upper()
    return f"{column}{first_row}:{column}{max(first_row, last_row)}"


def absolute_reference(sheet: str, extent: str) -> str:
    """Build a sheet-qualified absolute reference (``'Data'!$A$1:$B$2``)."""
    parsed = parse_extent(extent)
    quoted = "'" + sheet.replace("'", "''") + "'"
    start = f"${column_index_to_label(parsed.min_col)}${parsed.min_row}"
    if parsed.is_single_cell:
        return f"{quoted}!{start}"
    end = f"${column_index_to_label(parsed.max_col)}${parsed.max_row}"
    return f"{quoted}!{start}:{end}"
