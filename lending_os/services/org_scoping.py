from __future__ import annotations

from sqlalchemy.orm import InstrumentedAttribute
from sqlalchemy.sql import Select


def apply_org_filter(stmt: Select, org_id: str, *columns: InstrumentedAttribute) -> Select:
    if not columns:
        raise ValueError("apply_org_filter requires at least one org-scoped column")
    return stmt.where(*[col == org_id for col in columns])
