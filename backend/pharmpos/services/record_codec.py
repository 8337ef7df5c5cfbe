# Overview: Delimited-text codec for ledger import/export; header row + one record per line.

"""
Record Codec

Text grid format shared by stock, invoice and invoice-item files:
- comma separated, double-quote wrapped when a value holds a comma, quote or line break
- embedded quotes are doubled ("")
- CR, LF and CRLF line endings are all accepted
- the first non-blank row is the header; cells are trimmed on the way in

Trimming is lossy on purpose. This is a ledger import format, not an archive.
"""

from __future__ import annotations

import csv
import io
from typing import Any, Iterable, Mapping, Sequence


class CodecError(ValueError):
    """Raised when delimited text cannot be parsed without guessing."""


def _is_blank_row(row: Sequence[Any]) -> bool:
    # A bare line ending comes back as []; spreadsheet gaps as all-None cells
    return all(cell is None or str(cell).strip() == "" for cell in row)


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def records_from_grid(grid: Iterable[Sequence[Any]]) -> list[dict[str, str]]:
    """
    Zip each row of a cell grid against its header row.

    Missing trailing cells map to "", extra cells are dropped. When a header
    name repeats, the leftmost column wins.
    """
    header: list[str] | None = None
    records: list[dict[str, str]] = []

    for row in grid:
        if _is_blank_row(row):
            continue
        if header is None:
            header = [_cell_text(cell) for cell in row]
            continue

        record: dict[str, str] = {}
        for idx, name in enumerate(header):
            value = _cell_text(row[idx]) if idx < len(row) else ""
            record.setdefault(name, value)
        records.append(record)

    return records


def parse(text: str) -> list[dict[str, str]]:
    """Parse delimited text into records keyed by the trimmed header names."""
    if not text:
        return []

    # newline="" keeps quoted CR/LF inside fields and splits on any line ending
    stream = io.StringIO(text, newline="")
    reader = csv.reader(stream, strict=True)
    try:
        return records_from_grid(reader)
    except csv.Error as exc:
        raise CodecError(f"Malformed delimited text near line {reader.line_num}: {exc}") from exc


def header_for(records: Iterable[Mapping[str, Any]]) -> list[str]:
    """Union of keys across all records, in first-seen order."""
    header: dict[str, None] = {}
    for record in records:
        for key in record.keys():
            header.setdefault(str(key), None)
    return list(header)


def serialize(records: Iterable[Mapping[str, Any]]) -> str:
    """Serialize records back to delimited text with a single header row."""
    records = list(records)
    header = header_for(records)
    if not header:
        return ""

    out = io.StringIO(newline="")
    writer = csv.writer(out, quoting=csv.QUOTE_MINIMAL, lineterminator="\r\n")
    writer.writerow(header)
    for record in records:
        values = {str(k): v for k, v in record.items()}
        writer.writerow(["" if values.get(name) is None else str(values.get(name)) for name in header])
    return out.getvalue()
