# agents/address_agent/extractor.py
import io
import logging
from typing import Dict, List, Mapping, Optional

import chardet
import pandas as pd

from .models import ADDRESS_COLUMNS, ADDRESS_SEPARATOR

logger = logging.getLogger(__name__)

FALLBACK_ENCODINGS = ["utf-8", "ISO-8859-1", "cp1252", "latin1"]


class DuplicateHeaderError(ValueError):
    pass


def _reject_duplicate_headers(header: pd.DataFrame) -> None:
    """pandas renames repeated headers (``Name.1``); refuse them instead."""
    if header.empty:
        return
    names = [str(v) for v in header.iloc[0].tolist() if isinstance(v, str) and v != ""]
    seen, dupes = set(), []
    for name in names:
        if name in seen and name not in dupes:
            dupes.append(name)
        seen.add(name)
    if dupes:
        raise DuplicateHeaderError(f"Duplicate column names in header: {', '.join(dupes)}")


# ---------------------------
# CSV reading with encoding detection
# ---------------------------
def read_csv_flexible_bytes(data: bytes) -> pd.DataFrame:
    result = chardet.detect(data[:100000])
    encoding = result["encoding"] if result["encoding"] else "utf-8"
    try:
        df = pd.read_csv(io.BytesIO(data), encoding=encoding, dtype=str, keep_default_na=False)
    except UnicodeDecodeError:
        for enc in FALLBACK_ENCODINGS:
            try:
                df = pd.read_csv(io.BytesIO(data), encoding=enc, dtype=str, keep_default_na=False)
                encoding = enc
                logger.info("Read CSV with fallback encoding %s", enc)
                break
            except UnicodeDecodeError:
                continue
        else:
            raise
    _reject_duplicate_headers(
        pd.read_csv(io.BytesIO(data), encoding=encoding, header=None, nrows=1, dtype=str, keep_default_na=False)
    )
    return df


def read_excel_bytes(data: bytes) -> pd.DataFrame:
    _reject_duplicate_headers(pd.read_excel(io.BytesIO(data), header=None, nrows=1, dtype=str, engine="openpyxl"))
    df = pd.read_excel(io.BytesIO(data), dtype=str, engine="openpyxl")
    return df.fillna("")


def dataframe_to_rows(df: pd.DataFrame, skip_empty: bool = True) -> List[Dict[str, str]]:
    """Convert a string DataFrame into RawRows, optionally dropping rows with no content at all."""
    rows = []
    for record in df.to_dict(orient="records"):
        row = {str(k): ("" if v is None else str(v)) for k, v in record.items()}
        if skip_empty and not any(v.strip() for v in row.values()):
            continue
        rows.append(row)
    return rows


def read_rows(data: bytes, filename: str) -> List[Dict[str, str]]:
    """Parse an uploaded CSV or XLSX file into ordered RawRows (first row is the header)."""
    name = filename.lower()
    if name.endswith(".csv"):
        try:
            df = read_csv_flexible_bytes(data)
        except pd.errors.EmptyDataError:
            return []
    elif name.endswith(".xlsx"):
        df = read_excel_bytes(data)
    else:
        raise ValueError(f"Unsupported file type: {filename}. Upload a .csv or .xlsx file.")

    rows = dataframe_to_rows(df)
    logger.info("Read %d rows from %s (columns: %s)", len(rows), filename, list(df.columns))
    return rows


def construct_full_address(row: Mapping[str, Optional[str]]) -> Optional[str]:
    """Join the present address fields in fixed order, or None when there are none."""
    parts = []
    for col in ADDRESS_COLUMNS:
        value = row.get(col)
        if value is None:
            continue
        value = str(value).strip()
        if value:
            parts.append(value)
    return ADDRESS_SEPARATOR.join(parts) if parts else None
