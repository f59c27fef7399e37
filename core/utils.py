# core/utils.py
from __future__ import annotations
import io
import re
import unicodedata
import pandas as pd

# ---------------- CSV / bytes helpers ----------------

def df_to_csv_bytes(df: pd.DataFrame) -> bytes:
    if df is None:
        df = pd.DataFrame()
    buf = io.StringIO()
    df.to_csv(buf, index=False)
    return buf.getvalue().encode("utf-8-sig")

def df_to_excel_bytes(df: pd.DataFrame, sheet_name: str = "Sheet1") -> bytes:
    buf = io.BytesIO()
    with pd.ExcelWriter(buf, engine="openpyxl") as xw:
        df.to_excel(xw, sheet_name=sheet_name[:31], index=False)
    return buf.getvalue()

# ---------------- text helpers ----------------

def normalize_whitespace(s) -> str:
    return " ".join(str(s or "").split())

def clean_cell(s) -> str:
    """NFKC + collapsed whitespace; NaN/None -> ''."""
    if s is None:
        return ""
    try:
        if pd.isna(s):
            return ""
    except (TypeError, ValueError):
        pass
    return normalize_whitespace(unicodedata.normalize("NFKC", str(s)))

_EMAIL = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

def looks_like_email(s: str) -> bool:
    return bool(_EMAIL.match(str(s or "").strip()))

# ---------------- file readers ----------------

def read_table_file(uploaded) -> pd.DataFrame:
    """
    Read CSV or Excel; normalize headers to lowercase; keep cells as strings; strip whitespace.
    Auto-detect delimiter for CSV.
    """
    name = (getattr(uploaded, "name", "") or "").lower()
    if name.endswith((".xlsx", ".xls")):
        df = pd.read_excel(uploaded, dtype=str)
    else:
        try:
            df = pd.read_csv(uploaded, sep=None, engine="python", dtype=str)
        except (pd.errors.ParserError, UnicodeDecodeError, ValueError):
            uploaded.seek(0)
            df = pd.read_csv(uploaded, dtype=str)
    df.columns = [str(c).strip().lower() for c in df.columns]
    for c in df.columns:
        df[c] = df[c].map(lambda x: x.strip() if isinstance(x, str) else x)
    return df
