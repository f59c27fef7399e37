# core/export.py
from __future__ import annotations
import io
from datetime import datetime
from typing import Dict, Optional

import pandas as pd
from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH

from .hosting import HostSchedule
from .utils import df_to_csv_bytes, df_to_excel_bytes

# Column labels per language. Layout is cosmetic; keep keys stable.
LABELS: Dict[str, Dict[str, str]] = {
    "en": {
        "name": "Name",
        "address": "Address",
        "phone": "Phone",
        "can_host": "Can Host",
        "host_date": "Host Date",
        "role": "Role",
        "cancelled": "Session Not Held",
        "date": "Date",
        "weekday": "Day",
        "hosts": "Host(s)",
        "yes": "Yes",
        "no": "No",
        "teacher": "Teacher",
        "student": "Student",
        "sheet": "Host Schedule",
        "generated": "Generated",
    },
    "ar": {
        "name": "الاسم",
        "address": "العنوان",
        "phone": "الهاتف",
        "can_host": "يمكنه الاستضافة",
        "host_date": "تاريخ الاستضافة",
        "role": "الدور",
        "cancelled": "لم تُعقد الجلسة",
        "date": "التاريخ",
        "weekday": "اليوم",
        "hosts": "المضيف",
        "yes": "نعم",
        "no": "لا",
        "teacher": "المعلم",
        "student": "طالب",
        "sheet": "جدول الاستضافة",
        "generated": "تاريخ الإنشاء",
    },
}


def labels_for(lang: str) -> Dict[str, str]:
    return LABELS.get((lang or "en").lower(), LABELS["en"])


def schedule_frame(schedule: HostSchedule, lang: str = "en") -> pd.DataFrame:
    """One row per displayed host, in display order."""
    L = labels_for(lang)
    rows = []
    for c in schedule.displayed():
        d = schedule.date_of(c.id)
        rows.append({
            L["name"]: c.display_name,
            L["role"]: L["teacher"] if c.is_synthetic_teacher_row else L["student"],
            L["address"]: c.address or "",
            L["phone"]: c.phone or "",
            L["can_host"]: L["yes"] if c.can_host else L["no"],
            L["host_date"]: d or "",
            L["cancelled"]: L["yes"] if (d and schedule.is_cancelled(d)) else "",
        })
    cols = [L[k] for k in ("name", "role", "address", "phone", "can_host", "host_date", "cancelled")]
    return pd.DataFrame(rows, columns=cols)


def calendar_frame(schedule: HostSchedule, lang: str = "en") -> pd.DataFrame:
    """One row per session date with its host(s)."""
    L = labels_for(lang)
    rows = [{
        L["date"]: day.date,
        L["weekday"]: day.weekday,
        L["hosts"]: "; ".join(c.display_name for c in day.candidates),
        L["cancelled"]: L["yes"] if day.cancelled else "",
    } for day in schedule.calendar_view()]
    return pd.DataFrame(rows, columns=[L["date"], L["weekday"], L["hosts"], L["cancelled"]])


def schedule_csv_bytes(schedule: HostSchedule, lang: str = "en") -> bytes:
    return df_to_csv_bytes(schedule_frame(schedule, lang))


def schedule_excel_bytes(schedule: HostSchedule, lang: str = "en") -> bytes:
    return df_to_excel_bytes(schedule_frame(schedule, lang), sheet_name=labels_for(lang)["sheet"])


def export_filename(session_id: str, ext: str) -> str:
    return f"host_schedule_{session_id}.{ext.lstrip('.')}"


def schedule_docx_bytes(schedule: HostSchedule, lang: str = "en", title: Optional[str] = None) -> bytes:
    """Word document: heading, generated-at line, then the schedule table."""
    L = labels_for(lang)
    df = schedule_frame(schedule, lang)
    doc = Document()

    heading = doc.add_heading(title or L["sheet"], 0)
    stamp = doc.add_paragraph(f'{L["generated"]}: {datetime.now().strftime("%Y-%m-%d %H:%M")}')
    if L is LABELS["ar"]:
        for p in (heading, stamp):
            p.alignment = WD_ALIGN_PARAGRAPH.RIGHT

    table = doc.add_table(rows=1, cols=len(df.columns))
    table.style = "Light Grid Accent 1"
    for cell, header in zip(table.rows[0].cells, df.columns):
        cell.text = str(header)
    for record in df.itertuples(index=False):
        for cell, value in zip(table.add_row().cells, record):
            cell.text = str(value)

    buf = io.BytesIO()
    doc.save(buf)
    return buf.getvalue()
