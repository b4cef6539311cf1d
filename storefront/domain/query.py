# storefront/domain/query.py
"""
Parsowanie parametrow query stringa do niezaleznej od bazy reprezentacji.

    /products?price[gte]=100&averageRating[lt]=4&sort=-price,title&fields=title,price&keyword=phone&page=2

Wynik to QueryFeatures: lista ograniczen (Equality | Range), klucze sortowania,
projekcja pol, fraza wyszukiwania i paginacja. Translacja na SQLAlchemy jest
w storefront.repos.query_composer.
"""
import math
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

RESERVED_KEYS = frozenset({"page", "limit", "sort", "fields", "keyword"})
RANGE_OPERATORS = ("gte", "gt", "lte", "lt")

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 50
MAX_LIMIT = 1000
# offset musi sie zmiescic w INTEGER bazy
MAX_OFFSET = 2**31 - 1
DEFAULT_SORT_FIELD = "created_at"

_BRACKET_KEY = re.compile(r"^(?P<field>[^\[\]]+)\[(?P<sub>[^\[\]]+)\]$")


@dataclass(frozen=True)
class Equality:
    field: str
    value: Any


@dataclass(frozen=True)
class Range:
    field: str
    op: str
    value: Any


Constraint = Union[Equality, Range]


@dataclass(frozen=True)
class SortKey:
    field: str
    descending: bool = False


@dataclass(frozen=True)
class QueryFeatures:
    constraints: Tuple[Constraint, ...] = ()
    sort: Tuple[SortKey, ...] = (SortKey(DEFAULT_SORT_FIELD, descending=True),)
    fields: Optional[Tuple[str, ...]] = None
    excluded_fields: Tuple[str, ...] = ()
    keyword: Optional[str] = None
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass(frozen=True)
class Pagination:
    current_page: int
    limit: int
    number_of_pages: int
    total_docs: int
    next: Optional[int] = None
    previous: Optional[int] = None

    @classmethod
    def compute(cls, page: int, limit: int, total_docs: int) -> "Pagination":
        number_of_pages = math.ceil(total_docs / limit)
        return cls(
            current_page=page,
            limit=limit,
            number_of_pages=number_of_pages,
            total_docs=total_docs,
            next=page + 1 if page < number_of_pages else None,
            previous=page - 1 if page > 1 else None,
        )

    def as_dict(self) -> Dict[str, Any]:
        return {
            "currentPage": self.current_page,
            "limit": self.limit,
            "numberOfPages": self.number_of_pages,
            "totalDocs": self.total_docs,
            "next": self.next,
            "previous": self.previous,
        }


def parse_positive_int(raw: Any, default: int, maximum: Optional[int] = None) -> int:
    """Nigdy nie rzuca: brak, smieci, <= 0 albo > maximum daje wartosc domyslna."""
    if isinstance(raw, (list, tuple)):
        raw = raw[-1] if raw else None
    try:
        value = int(float(str(raw).strip()))
    except (TypeError, ValueError, OverflowError):
        return default
    if value <= 0 or (maximum is not None and value > maximum):
        return default
    return value


def _split_csv(raw: Any) -> List[str]:
    if raw is None:
        return []
    if isinstance(raw, (list, tuple)):
        raw = ",".join(str(r) for r in raw)
    return [token.strip() for token in str(raw).split(",") if token.strip()]


def parse_sort(raw: Any) -> Tuple[SortKey, ...]:
    keys = []
    for token in _split_csv(raw):
        if token.startswith("-"):
            name = token[1:].strip()
            if name:
                keys.append(SortKey(name, descending=True))
        else:
            keys.append(SortKey(token.lstrip("+")))

    if not keys:
        return (SortKey(DEFAULT_SORT_FIELD, descending=True),)
    return tuple(keys)


def parse_fields(raw: Any) -> Tuple[Optional[Tuple[str, ...]], Tuple[str, ...]]:
    included, excluded = [], []
    for token in _split_csv(raw):
        if token.startswith("-"):
            if token[1:]:
                excluded.append(token[1:])
        elif token not in included:
            included.append(token)
    return (tuple(included) if included else None), tuple(excluded)


def _leaf_constraints(path: str, value: Any) -> List[Constraint]:
    if isinstance(value, Mapping):
        out: List[Constraint] = []
        for sub, sub_value in value.items():
            if sub in RANGE_OPERATORS and not isinstance(sub_value, Mapping):
                out.append(Range(path, sub, _last(sub_value)))
            else:
                out.extend(_leaf_constraints(f"{path}.{sub}", sub_value))
        return out
    return [Equality(path, _last(value))]


def _last(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return value[-1] if value else None
    return value


def parse_filters(params: Mapping[str, Any]) -> Tuple[Constraint, ...]:
    """
    Zamienia parametry (bez kluczy zarezerwowanych) na ograniczenia.

    Ostatni wpis wygrywa per pole: Equality nadpisuje wszystko co bylo wczesniej
    na tym polu, Range nadpisuje wczesniejsze Equality, kolejne operatory
    zakresu na tym samym polu sie sumuja.
    """
    per_field: Dict[str, List[Constraint]] = {}

    for key, value in params.items():
        if key in RESERVED_KEYS:
            continue

        match = _BRACKET_KEY.match(key)
        if match:
            value = {match.group("sub"): value}
            key = match.group("field")

        for constraint in _leaf_constraints(key, value):
            current = per_field.get(constraint.field, [])
            if isinstance(constraint, Equality):
                current = [constraint]
            else:
                current = [
                    c for c in current
                    if isinstance(c, Range) and c.op != constraint.op
                ]
                current.append(constraint)
            # przeniesienie na koniec zachowuje kolejnosc ostatniego wpisu
            per_field.pop(constraint.field, None)
            per_field[constraint.field] = current

    return tuple(c for constraints in per_field.values() for c in constraints)


def parse_query_features(params: Mapping[str, Any]) -> QueryFeatures:
    limit = parse_positive_int(params.get("limit"), DEFAULT_LIMIT, MAX_LIMIT)
    page = parse_positive_int(params.get("page"), DEFAULT_PAGE, MAX_OFFSET // limit + 1)
    fields, excluded = parse_fields(params.get("fields"))
    keyword = _last(params.get("keyword"))
    keyword = str(keyword).strip() if keyword is not None else ""

    return QueryFeatures(
        constraints=parse_filters(params),
        sort=parse_sort(params.get("sort")),
        fields=fields,
        excluded_fields=excluded,
        keyword=keyword or None,
        page=page,
        limit=limit,
    )
