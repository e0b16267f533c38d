import io
import os
import tempfile
from pathlib import Path
from typing import List, Mapping, Optional, Sequence, Union

from openpyxl import Workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter

from .models import OUTPUT_COLUMNS

OUTPUT_FILENAME = "verified_addresses.xlsx"
SHEET_TITLE = "Verified Addresses"
XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

HEADER_FILL_COLOR = "EDF2F7"  # Light gray-blue
MAX_COLUMN_WIDTH = 60


def clean_cell_value(value) -> str:
    """Drop control characters openpyxl refuses to write."""
    if value is None:
        return ""
    return ILLEGAL_CHARACTERS_RE.sub("", str(value))


def _write_row(ws, row_idx: int, values: Sequence) -> None:
    for col_idx, value in enumerate(values, start=1):
        cell = ws.cell(row=row_idx, column=col_idx, value=clean_cell_value(value))
        # Cell text is data, never a formula
        if cell.data_type == "f":
            cell.data_type = "s"


def output_columns(rows: Sequence[Mapping[str, str]]) -> List[str]:
    """Fixed output columns first, then any extra keys in first-seen order."""
    columns = list(OUTPUT_COLUMNS)
    for row in rows:
        for key in row:
            if key not in columns:
                columns.append(key)
    return columns


# ---------------------------
# Workbook writer
# ---------------------------
def build_workbook_bytes(
    rows: Sequence[Mapping[str, str]],
    columns: Optional[Sequence[str]] = None,
) -> bytes:
    """
    Serialize merged rows into a single-sheet XLSX with a bold, shaded header row.
    """
    if columns is None:
        columns = output_columns(rows)

    wb = Workbook()
    ws = wb.active
    ws.title = SHEET_TITLE

    _write_row(ws, 1, columns)
    header_font = Font(bold=True)
    header_fill = PatternFill(start_color=HEADER_FILL_COLOR, end_color=HEADER_FILL_COLOR, fill_type="solid")
    for cell in ws[1]:
        cell.font = header_font
        cell.fill = header_fill

    for row_idx, row in enumerate(rows, start=2):
        _write_row(ws, row_idx, [row.get(col, "") for col in columns])

    for idx, col in enumerate(columns, start=1):
        longest = max([len(str(col))] + [len(str(row.get(col, "") or "")) for row in rows])
        ws.column_dimensions[get_column_letter(idx)].width = min(longest + 2, MAX_COLUMN_WIDTH)
    ws.freeze_panes = "A2"

    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


# ---------------------------
# Local file delivery
# ---------------------------
def _current_umask() -> int:
    mask = os.umask(0)
    os.umask(mask)
    return mask


def save_to_disk(blob: bytes, filename: str = OUTPUT_FILENAME, directory: Union[str, Path] = ".") -> Path:
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    target = directory / filename

    fd, tmp = tempfile.mkstemp(dir=directory, suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(blob)
        # mkstemp creates 0600; give the output the usual umask-based mode
        os.chmod(tmp, 0o666 & ~_current_umask())
        os.replace(tmp, target)
    except Exception:
        Path(tmp).unlink(missing_ok=True)
        raise
    return target
