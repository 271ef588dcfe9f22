# storefront/repos/query.py
from typing import Dict

from sqlalchemy import Select, asc, desc, func, select

from storefront.domain.query import QuerySpec

LIKE_ESCAPE = "\\"


def escape_like(value: str) -> str:
    """Tekst usera jako literal w LIKE: \\, % i _ nie dzialaja jak wildcardy."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def ilike_contains(column, value: str):
    return column.ilike(f"%{escape_like(value)}%", escape=LIKE_ESCAPE)


def ilike_prefix(column, value: str):
    return column.ilike(f"{escape_like(value)}%", escape=LIKE_ESCAPE)


def _condition(column, op: str, value):
    if op == "eq":
        return column == value
    if op == "ne":
        return column != value
    if op == "gt":
        return column > value
    if op == "gte":
        return column >= value
    if op == "lt":
        return column < value
    if op == "lte":
        return column <= value
    if op == "like":
        return ilike_contains(column, value)
    if op == "in":
        return column.in_(value)
    raise ValueError(f"Unsupported operator {op}")


def apply_filters(stmt: Select, columns: Dict[str, object], spec: QuerySpec) -> Select:
    """Nazwy pol sa juz zwalidowane przez parse_query_spec, tu tylko mapowanie na kolumny."""
    for f in spec.filters:
        stmt = stmt.where(_condition(columns[f.field], f.op, f.value))
    return stmt


def apply_sort(stmt: Select, columns: Dict[str, object], spec: QuerySpec) -> Select:
    for name, direction in spec.sort:
        column = columns[name]
        stmt = stmt.order_by(desc(column) if direction == "desc" else asc(column))
    return stmt


def count_rows(db, stmt: Select) -> int:
    return db.execute(select(func.count()).select_from(stmt.order_by(None).subquery())).scalar_one()
