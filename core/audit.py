# core/audit.py
from __future__ import annotations
import json
import sqlite3
from typing import Any, Dict, Optional

import pandas as pd

from .db import exec_sql, new_id, read_df
from .logs import get_logger

log = get_logger(__name__)


def _dump(data: Optional[Dict[str, Any]]) -> Optional[str]:
    if data is None:
        return None
    return json.dumps(data, default=str, ensure_ascii=False)


def _insert(table_name: str, record_id: str, operation: str,
            old_data: Optional[Dict[str, Any]], new_data: Optional[Dict[str, Any]],
            actor: str, reason: Optional[str]) -> bool:
    """Audit writes never block the operation being audited; failures are only logged."""
    try:
        exec_sql(
            "INSERT INTO audit_log(audit_id, table_name, record_id, operation, old_data, new_data, deleted_by, reason) "
            "VALUES(?,?,?,?,?,?,?,?)",
            (new_id(), table_name, str(record_id), operation,
             _dump(old_data), _dump(new_data), actor or "system", reason),
        )
        return True
    except sqlite3.Error:
        log.exception("audit %s on %s/%s not recorded", operation, table_name, record_id)
        return False


def log_delete(table_name: str, record_id: str, record_data: Dict[str, Any],
               actor: str = "system", reason: Optional[str] = None) -> bool:
    return _insert(table_name, record_id, "DELETE", record_data, None, actor, reason)


def log_update(table_name: str, record_id: str, old_data: Dict[str, Any], new_data: Dict[str, Any],
               actor: str = "system", reason: Optional[str] = None) -> bool:
    return _insert(table_name, record_id, "UPDATE", old_data, new_data, actor, reason)


def recent_entries(limit: int = 200) -> pd.DataFrame:
    return read_df(
        "SELECT deleted_at, operation, table_name, record_id, deleted_by, COALESCE(reason,'') AS reason, old_data "
        "FROM audit_log ORDER BY deleted_at DESC, rowid DESC LIMIT ?",
        (int(limit),),
    )
