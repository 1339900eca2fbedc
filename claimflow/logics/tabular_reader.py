"""
Tabular file reading.

Turns uploaded .xlsx/.xlsm/.csv bytes into a header row plus data rows of plain
Python cell values (str, int, float or None), 1:1 positional with the header.
"""

import io
import logging
import math
import zipfile
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd

from claimflow.logics.exceptions import UnreadableFileError

logger = logging.getLogger(__name__)

PROCESSED_SHEET_NAME = "All Processed Data"
EXCEL_EXTENSIONS = (".xlsx", ".xlsm")
CSV_EXTENSIONS = (".csv",)
SUPPORTED_EXTENSIONS = EXCEL_EXTENSIONS + CSV_EXTENSIONS


def _clean_cell(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    if isinstance(value, str):
        return value if value.strip() else None
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    if isinstance(value, np.generic):
        return _clean_cell(value.item())
    return value


def _frame_to_rows(df: pd.DataFrame) -> List[List[Any]]:
    return [[_clean_cell(value) for value in row] for row in df.itertuples(index=False, name=None)]


def _pick_sheet(sheet_names: List[str], preferred: Optional[str]) -> Any:
    if preferred and preferred in sheet_names:
        return preferred
    return sheet_names[0]


def read_tabular(contents: bytes, filename: str, preferred_sheet: Optional[str] = PROCESSED_SHEET_NAME) -> List[List[Any]]:
    """
    Read a file into an array of arrays (header row first).

    Excel workbooks use the preferred sheet when present, else the first sheet.

    Raises:
        UnreadableFileError: For unsupported extensions, parse failures or empty files
    """
    name = (filename or "").lower()
    if not name.endswith(SUPPORTED_EXTENSIONS):
        raise UnreadableFileError(filename, "Invalid file type. Expected .xlsx, .xlsm, or .csv")

    try:
        if name.endswith(CSV_EXTENSIONS):
            df = pd.read_csv(io.BytesIO(contents), header=None, dtype=str, keep_default_na=False)
        else:
            excel = pd.ExcelFile(io.BytesIO(contents), engine="openpyxl")
            sheet = _pick_sheet(excel.sheet_names, preferred_sheet)
            df = excel.parse(sheet_name=sheet, header=None, dtype=object)
            logger.debug(f"[Reader] Using sheet '{sheet}' of {filename}")
    except pd.errors.EmptyDataError:
        raise UnreadableFileError(filename, "File is empty")
    except (ValueError, KeyError, OSError, zipfile.BadZipFile) as e:
        logger.error(f"[Reader] Error reading {filename}: {e}", exc_info=True)
        raise UnreadableFileError(filename, str(e))

    rows = _frame_to_rows(df)
    if not rows:
        raise UnreadableFileError(filename, "File has no header row")

    logger.info(f"[Reader] Read {len(rows) - 1} data rows from {filename}")
    return rows


def read_records(contents: bytes, filename: str) -> List[Dict[str, Any]]:
    """
    Read the first sheet (or CSV) as header-keyed records, e.g. an assignment file.

    Raises:
        UnreadableFileError: For unsupported or unreadable files
    """
    rows = read_tabular(contents, filename, preferred_sheet=None)
    header = [str(h).strip() if h is not None else "" for h in rows[0]]
    records = []
    for row in rows[1:]:
        if all(value is None for value in row):
            continue
        records.append({header[i]: row[i] for i in range(min(len(header), len(row))) if header[i]})
    return records
