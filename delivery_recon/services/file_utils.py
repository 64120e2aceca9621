import csv
import io
import logging
import re
from typing import Any, Dict, List, Optional

import pandas as pd
from fastapi import UploadFile

from delivery_recon.core.enum.Platform import Platform
from delivery_recon.core.exceptions import ParseError, UploadError

logger = logging.getLogger(__name__)

CSV_ENCODINGS = ('utf-8-sig', 'cp1252', 'latin-1')  # latin-1 never fails, so it goes last
EXCEL_EXTENSIONS = {'xlsx', 'xlsm', 'xls'}

# Uber Eats exports sometimes open with a row describing each column
DESCRIPTION_ROW_PATTERN = re.compile(
    r'\b(as per|whether it|either|mode of|platform from which)\b', re.IGNORECASE
)


def get_file_extension(filename: Optional[str]) -> str:
    return filename.lower().rsplit('.', 1)[-1] if filename and '.' in filename else ''


def get_file_info(file: UploadFile) -> Dict[str, Any]:
    """
    Get basic file information for logging and debugging.
    """
    return {
        "filename": file.filename,
        "content_type": file.content_type,
        "size": getattr(file, 'size', 'unknown')
    }


def validate_file_size(content: bytes, max_size_mb: int) -> None:
    size_mb = len(content) / (1024 * 1024)
    if size_mb > max_size_mb:
        raise UploadError(
            f"File is {size_mb:.1f} MB, larger than the {max_size_mb} MB limit",
            {"size_mb": round(size_mb, 2), "max_size_mb": max_size_mb}
        )


def is_description_row(cells: List[Any]) -> bool:
    first = next((str(c) for c in cells if c is not None and str(c).strip() and not pd.isna(c)), '')
    return bool(DESCRIPTION_ROW_PATTERN.search(first))


def decode_csv_bytes(content: bytes) -> str:
    """Decode CSV bytes with encoding fallback; a UTF-8 BOM is stripped"""
    for encoding in CSV_ENCODINGS:
        try:
            return content.decode(encoding)
        except UnicodeDecodeError:
            continue
    raise ParseError("Could not decode CSV file", {"encodings_tried": list(CSV_ENCODINGS)})


def _read_csv(content: bytes, platform: Optional[Platform]) -> pd.DataFrame:
    text = decode_csv_bytes(content).lstrip('\ufeff')
    if not text.strip():
        raise ParseError("File is empty")

    skip = 0
    if platform is Platform.UBER_EATS:
        first_line = next(csv.reader(io.StringIO(text.split('\n', 1)[0])), [])
        if is_description_row(first_line):
            logger.info("⚠️ Skipping Uber Eats description row above the header")
            skip = 1

    return pd.read_csv(
        io.StringIO(text),
        dtype=str,
        keep_default_na=False,
        skip_blank_lines=True,
        skiprows=skip,
    )


def _read_excel(content: bytes, platform: Optional[Platform]) -> pd.DataFrame:
    raw = pd.read_excel(io.BytesIO(content), header=None, dtype=str)
    if raw.empty:
        raise ParseError("File is empty")

    header_row = 0
    if platform is Platform.UBER_EATS and is_description_row(raw.iloc[0].tolist()):
        logger.info("⚠️ Skipping Uber Eats description row above the header")
        header_row = 1

    headers = ['' if pd.isna(h) else str(h) for h in raw.iloc[header_row].tolist()]
    frame = raw.iloc[header_row + 1:].reset_index(drop=True)
    frame.columns = headers
    return frame.fillna('')


def read_tabular_bytes(content: bytes, filename: Optional[str],
                       platform: Optional[Platform] = None) -> pd.DataFrame:
    """
    Read CSV or spreadsheet bytes into an all-string DataFrame.

    Cells are stripped and blank rows dropped. For Uber Eats a
    column-description row above the header is skipped.
    Raises ParseError when the content cannot be read.
    """
    extension = get_file_extension(filename)
    try:
        if extension in EXCEL_EXTENSIONS:
            df = _read_excel(content, platform)
        else:
            df = _read_csv(content, platform)
    except ParseError:
        raise
    except Exception as e:
        logger.error(f"❌ Could not parse {filename}: {e}")
        raise ParseError(f"Could not parse file {filename}: {e}", {"filename": filename}) from e

    df.columns = [str(c).replace('\ufeff', '').strip() for c in df.columns]
    if not any(df.columns):
        raise ParseError(f"No header row found in {filename}", {"filename": filename})

    if len(df):
        df = df.apply(lambda col: col.map(lambda v: v.strip() if isinstance(v, str) else v))
        blank = (df == '').all(axis=1)
        df = df.loc[~blank].reset_index(drop=True)

    logger.info(f"📄 Read {len(df)} row(s), {len(df.columns)} column(s) from {filename}")
    return df


def dataframe_to_records(df: pd.DataFrame) -> List[Dict[str, str]]:
    """Convert a string frame into a list of row dicts (header -> cell)"""
    return df.to_dict('records')
