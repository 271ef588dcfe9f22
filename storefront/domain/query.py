# storefront/domain/query.py
"""
Typowana specyfikacja zapytania listujacego (filtr / sortowanie / strony).

Parametry z query stringa w formie ``price[gte]=10&brand=acme&sort=-price,name``
sa parsowane do ``QuerySpec``. Nazwy pol i operatory sa sprawdzane z allow-lista
zasobu, wiec do warstwy repo nigdy nie trafia surowa nazwa kolumny od klienta.
"""
import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, FrozenSet, List, Mapping, Tuple

from storefront.utils.errors import BadRequestError

OPERATORS = frozenset({"eq", "ne", "gt", "gte", "lt", "lte", "like", "in"})

RESERVED_PARAMS = frozenset({"page", "limit", "sort", "fields", "search", "category"})

_KEY_RE = re.compile(r"^(?P<field>[a-z_]+)(\[(?P<op>[a-z]+)\])?$")


@dataclass(frozen=True)
class FieldRule:
    cast: Callable[[str], Any]
    operators: FrozenSet[str]


@dataclass(frozen=True)
class Filter:
    field: str
    op: str
    value: Any


@dataclass
class QuerySpec:
    filters: List[Filter] = field(default_factory=list)
    sort: List[Tuple[str, str]] = field(default_factory=list)
    page: int = 1
    limit: int = 10

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def to_decimal(raw: str) -> Decimal:
    try:
        return Decimal(raw)
    except InvalidOperation:
        raise BadRequestError(f"Invalid number: {raw}")


def to_int(raw: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise BadRequestError(f"Invalid integer: {raw}")


def to_bool(raw: str) -> bool:
    return raw.lower() in ("1", "true", "yes")


def _positive_int(raw: Any, default: int, name: str) -> int:
    if raw in (None, ""):
        return default
    value = to_int(str(raw))
    if value < 1:
        raise BadRequestError(f"{name} must be at least 1")
    return value


def parse_query_spec(
    params: Mapping[str, str],
    allowed_filters: Dict[str, FieldRule],
    allowed_sort: FrozenSet[str],
    default_sort: str = "-created_at",
    max_limit: int = 100,
) -> QuerySpec:
    filters: List[Filter] = []

    for key, raw in params.items():
        if key in RESERVED_PARAMS:
            continue

        match = _KEY_RE.match(key)
        if not match:
            raise BadRequestError(f"Invalid filter parameter: {key}")

        name = match.group("field")
        op = match.group("op") or "eq"

        rule = allowed_filters.get(name)
        if rule is None:
            raise BadRequestError(f"Filtering by '{name}' is not allowed")
        if op not in OPERATORS or op not in rule.operators:
            raise BadRequestError(f"Operator '{op}' is not allowed for '{name}'")

        if op == "in":
            value = [rule.cast(part) for part in str(raw).split(",") if part]
        elif op == "like":
            value = str(raw)
        else:
            value = rule.cast(str(raw))
        filters.append(Filter(field=name, op=op, value=value))

    sort: List[Tuple[str, str]] = []
    for token in (params.get("sort") or default_sort).split(","):
        token = token.strip()
        if not token:
            continue
        direction = "desc" if token.startswith("-") else "asc"
        name = token.lstrip("-")
        if name not in allowed_sort:
            raise BadRequestError(f"Sorting by '{name}' is not allowed")
        sort.append((name, direction))

    page = _positive_int(params.get("page"), 1, "page")
    limit = min(_positive_int(params.get("limit"), 10, "limit"), max_limit)

    return QuerySpec(filters=filters, sort=sort, page=page, limit=limit)
