import io
import re
import unicodedata
from typing import List

import pandas as pd

from .schemas import TablePreview

SPREADSHEET_EXTENSIONS = (".xlsx", ".xls")
TABLE_EXTENSIONS = SPREADSHEET_EXTENSIONS + (".csv",)


def file_extension(file_name: str) -> str:
    parts = file_name.rsplit(".", 1)
    return parts[1] if len(parts) > 1 else ""


def sanitize_file_name(name: str) -> str:
    """ASCII-only, lower-case storage name: 'Bilan Été 2024' -> 'bilan_ete_2024'."""
    normalized = unicodedata.normalize("NFD", name)
    stripped = "".join(c for c in normalized if not unicodedata.combining(c))
    safe = re.sub(r"[^a-zA-Z0-9._-]", "_", stripped)
    return re.sub(r"_+", "_", safe).lower()


def read_table_frames(blob: bytes, file_name: str) -> List[tuple]:
    """Parse CSV or Excel bytes into (sheet name, DataFrame) pairs."""
    if file_name.lower().endswith(".csv"):
        header = blob.split(b"\n", 1)[0]
        # pandas sniffs the header line; a lone column name has nothing to sniff
        sep = None if b";" in header or b"\t" in header else ","
        df = pd.read_csv(io.BytesIO(blob), sep=sep, engine="python")
        return [("csv", df)]

    xls = pd.ExcelFile(io.BytesIO(blob))
    return [(sheet_name, xls.parse(sheet_name)) for sheet_name in xls.sheet_names]


def parse_table_bytes(blob: bytes, file_name: str, max_rows: int = 100) -> List[TablePreview]:
    tables = []
    for sheet_name, df in read_table_frames(blob, file_name):
        df = df.head(max_rows)
        df.columns = [str(c) for c in df.columns]
        tables.append(
            TablePreview(
                sheet=str(sheet_name),
                columns=list(df.columns),
                rows=df.fillna("").to_dict(orient="records"),
            )
        )
    return tables
