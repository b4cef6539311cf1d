# storefront/repos/query_composer.py
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Sequence, Tuple

from sqlalchemy import JSON, String, false, func, inspect, or_, select
from sqlalchemy.orm import Session, load_only

from storefront.domain.query import (
    Constraint,
    Equality,
    Pagination,
    QueryFeatures,
    Range,
    parse_query_features,
)
from storefront.utils.errors import ValidationFailure
from storefront.utils.settings import SORT_COLLATION
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

# pole optimistic lockingu nie wychodzi na zewnatrz
VERSION_FIELD = "version"
DEFAULT_SEARCH_FIELDS = ("name",)

_TRUE = {"true", "1", "yes"}
_FALSE = {"false", "0", "no"}


class QueryComposer:
    """
    Buduje dwa niezalezne zapytania z tego samego zestawu ograniczen:
    list_statement (filtr + szukanie + sort + projekcja + paginacja)
    i count_statement (tylko filtr + szukanie).
    """

    def __init__(
        self,
        model,
        features: QueryFeatures,
        base_constraints: Sequence[Constraint] = (),
    ):
        self.model = model
        self.features = features
        self.base_constraints = tuple(base_constraints)
        self._columns = inspect(model).columns
        self._pk = inspect(model).primary_key[0]

    # ------------------------------------------------------------------
    # where
    # ------------------------------------------------------------------
    def _coerce(self, column, value: Any) -> Any:
        if value is None:
            return None
        try:
            python_type = column.type.python_type
        except NotImplementedError:
            return value

        if isinstance(value, python_type) and not isinstance(value, bool):
            return value

        raw = str(value).strip()
        try:
            if python_type is bool:
                if raw.lower() in _TRUE:
                    return True
                if raw.lower() in _FALSE:
                    return False
                raise ValueError(raw)
            if python_type is int:
                return int(raw)
            if python_type is Decimal:
                return Decimal(raw)
            if python_type is float:
                return float(raw)
            if python_type is datetime:
                return datetime.fromisoformat(raw)
            if python_type is date:
                return date.fromisoformat(raw)
        except (ValueError, InvalidOperation):
            raise ValidationFailure(f"Nieprawidlowa wartosc '{raw}' dla pola {column.key}")
        return raw

    def _constraint_clause(self, constraint: Constraint):
        column = self._columns.get(constraint.field)
        if column is None:
            logger.debug(f"Pomijam filtr na nieznanym polu {constraint.field}")
            return None

        # dokumenty JSON nie sa porownywalne wprost, nie filtrujemy
        if isinstance(column.type, JSON):
            return None

        attr = getattr(self.model, column.key)
        value = self._coerce(column, constraint.value)

        if isinstance(constraint, Equality):
            return attr.is_(None) if value is None else attr == value

        if isinstance(constraint, Range):
            if constraint.op == "gte":
                return attr >= value
            if constraint.op == "gt":
                return attr > value
            if constraint.op == "lte":
                return attr <= value
            if constraint.op == "lt":
                return attr < value
        return None

    def filter_clauses(self) -> List:
        clauses = []
        for constraint in self.base_constraints + self.features.constraints:
            clause = self._constraint_clause(constraint)
            if clause is not None:
                clauses.append(clause)
        return clauses

    def search_clause(self):
        keyword = self.features.keyword
        if not keyword:
            return None

        names = getattr(self.model, "__search_fields__", DEFAULT_SEARCH_FIELDS)
        matches = [
            getattr(self.model, name).icontains(keyword, autoescape=True)
            for name in names
            if name in self._columns
        ]
        if not matches:
            return false()
        return or_(*matches)

    def where_clauses(self) -> List:
        clauses = self.filter_clauses()
        search = self.search_clause()
        if search is not None:
            clauses.append(search)
        return clauses

    # ------------------------------------------------------------------
    # sort / projekcja
    # ------------------------------------------------------------------
    def order_by(self) -> List:
        order = []
        for key in self.features.sort:
            column = self._columns.get(key.field)
            if column is None or isinstance(column.type, JSON):
                continue
            expr = getattr(self.model, column.key)
            if isinstance(column.type, String):
                expr = expr.collate(SORT_COLLATION) if SORT_COLLATION else func.lower(expr)
            order.append(expr.desc() if key.descending else expr.asc())

        # stabilna paginacja przy rownych kluczach
        pk = getattr(self.model, self._pk.key)
        last_desc = bool(self.features.sort) and self.features.sort[-1].descending
        order.append(pk.desc() if last_desc else pk.asc())
        return order

    def projection(self) -> Tuple[str, ...]:
        if self.features.fields:
            names = [self._pk.key] + [
                f for f in self.features.fields
                if f in self._columns and f != self._pk.key
            ]
        else:
            names = [c.key for c in self._columns if c.key != VERSION_FIELD]

        excluded = set(self.features.excluded_fields) - {self._pk.key}
        return tuple(n for n in names if n not in excluded)

    # ------------------------------------------------------------------
    # zapytania
    # ------------------------------------------------------------------
    def list_statement(self):
        attrs = [getattr(self.model, name) for name in self.projection()]
        return (
            select(self.model)
            .where(*self.where_clauses())
            .order_by(*self.order_by())
            .options(load_only(*attrs))
            .offset(self.features.offset)
            .limit(self.features.limit)
        )

    def count_statement(self):
        return select(func.count()).select_from(self.model).where(*self.where_clauses())

    def pagination(self, total_docs: int) -> Pagination:
        return Pagination.compute(self.features.page, self.features.limit, total_docs)


def serialize(obj, fields: Sequence[str]) -> Dict[str, Any]:
    return {name: getattr(obj, name) for name in fields}


def fetch_page(
    db: Session,
    model,
    params,
    base_constraints: Sequence[Constraint] = (),
) -> Tuple[List[Dict[str, Any]], Pagination]:
    composer = QueryComposer(model, parse_query_features(params), base_constraints)

    total_docs = db.execute(composer.count_statement()).scalar_one()
    rows = db.execute(composer.list_statement()).scalars().all()

    fields = composer.projection()
    return [serialize(row, fields) for row in rows], composer.pagination(total_docs)
