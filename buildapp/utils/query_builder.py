# buildapp/utils/query_builder.py
"""
Allow-listed filtering, sorting and pagination for list endpoints.

Callers name fields; only names registered on the builder are accepted and
every value reaches the database as a bound parameter.
"""
import math
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from sqlalchemy.orm import Query

from buildapp.core.errors import ValidationError

_OPERATORS = {
    "eq": lambda column, value: column == value,
    "in": lambda column, value: column.in_(value),
    "gte": lambda column, value: column >= value,
    "lte": lambda column, value: column <= value,
    "contains": lambda column, value: column.ilike(f"%{value}%"),
}


@dataclass(frozen=True)
class FilterField:
    column: Any
    operator: str = "eq"
    # optional converter for raw query-string values
    coerce: Optional[Any] = None

    def __post_init__(self):
        if self.operator not in _OPERATORS:
            raise ValueError(f"Unsupported filter operator: {self.operator}")


@dataclass
class ListQueryBuilder:
    filters: Dict[str, FilterField]
    sortable: Dict[str, Any]
    default_sort: str
    default_order: str = "desc"
    max_page_size: int = 50

    def apply_filters(self, query: Query, params: Mapping[str, Any]) -> Query:
        unknown = sorted(set(params) - set(self.filters))
        if unknown:
            raise ValidationError(
                f"Unsupported filter(s): {', '.join(unknown)}",
                details={"allowed": sorted(self.filters)},
            )
        for name, value in params.items():
            if value is None or value == "":
                continue
            spec = self.filters[name]
            if spec.coerce is not None:
                try:
                    value = spec.coerce(value)
                except (TypeError, ValueError):
                    raise ValidationError(f"Invalid value for filter '{name}'")
            query = query.filter(_OPERATORS[spec.operator](spec.column, value))
        return query

    def apply_sort(self, query: Query, sort: Optional[str], order: Optional[str]) -> Query:
        sort = sort or self.default_sort
        order = (order or self.default_order).lower()
        if sort not in self.sortable:
            raise ValidationError(
                f"Cannot sort by '{sort}'",
                details={"allowed": sorted(self.sortable)},
            )
        if order not in ("asc", "desc"):
            raise ValidationError("order must be 'asc' or 'desc'")
        column = self.sortable[sort]
        return query.order_by(column.asc() if order == "asc" else column.desc())

    def paginate(
        self,
        query: Query,
        *,
        params: Mapping[str, Any],
        sort: Optional[str] = None,
        order: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> dict:
        page = max(page, 1)
        page_size = max(1, min(page_size, self.max_page_size))

        query = self.apply_filters(query, params)
        total_count = query.count()
        total_pages = math.ceil(total_count / page_size) if page_size > 0 else 0
        items = (
            self.apply_sort(query, sort, order)
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return {
            "items": items,
            "pagination": {
                "page": page,
                "page_size": page_size,
                "total_count": total_count,
                "total_pages": total_pages,
            },
        }
