"""Filter translation from storage-neutral filter descriptions to engine queries"""

import logging
import re
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .exceptions import QueryError, UnsupportedSearchError

logger = logging.getLogger(__name__)

_OPERATOR_NAME = re.compile(r"^\$[A-Za-z][A-Za-z_]*$")
_PROJECTION = re.compile(r"^\s*(\S+)\s+as\s+(\S+)\s*$", re.IGNORECASE)


class QueryOperator(Enum):
    """Operators understood by the translator"""
    EQ = "="
    IN = "IN"
    GT = ">"
    GTE = ">="
    LT = "<"
    LTE = "<="
    LIKE = "LIKE"
    PASSTHROUGH = "PASSTHROUGH"


OPERATOR_KEYS = {
    "$eq": QueryOperator.EQ,
    "$in": QueryOperator.IN,
    "$gt": QueryOperator.GT,
    "$gte": QueryOperator.GTE,
    "$lt": QueryOperator.LT,
    "$lte": QueryOperator.LTE,
    "$like": QueryOperator.LIKE,
}

RANGE_OPERATORS = (QueryOperator.GT, QueryOperator.GTE, QueryOperator.LT, QueryOperator.LTE)

ORDER_DIRECTIONS = {
    "$asc": "ASC",
    "$desc": "DESC",
}


def clause_keyword(raw: str) -> str:
    """CQL keyword for a raw '$name' key, e.g. '$contains_key' -> 'CONTAINS KEY'"""
    return raw[1:].replace("_", " ").upper()


class QueryCondition:
    """Represents a single condition on one column"""

    def __init__(self, field: str, operator: QueryOperator, value: Any = None,
                 raw_operator: Optional[str] = None):
        self.field = field
        self.operator = operator
        self.value = value
        self.raw_operator = raw_operator

    @property
    def cql_operator(self) -> str:
        """Operator token as written in CQL"""
        if self.operator == QueryOperator.PASSTHROUGH:
            return clause_keyword(self.raw_operator)
        return self.operator.value

    def to_dict(self) -> Dict[str, Any]:
        """Convert condition to dictionary"""
        return {
            'field': self.field,
            'operator': self.cql_operator,
            'value': self.value
        }

    def __eq__(self, other):
        if not isinstance(other, QueryCondition):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self):
        return f"{self.field} {self.cql_operator} {self.value!r}"


@dataclass(frozen=True)
class Projection:
    """One output column of a SELECT, optionally aliased"""
    field: str
    alias: Optional[str] = None

    @classmethod
    def parse(cls, text: str) -> "Projection":
        if not isinstance(text, str) or not text.strip():
            raise QueryError(f"Invalid projection: {text!r}")
        match = _PROJECTION.match(text)
        if match:
            return cls(match.group(1), match.group(2))
        return cls(text.strip())


@dataclass
class EngineQuery:
    """Engine-valid predicate set produced by the translator"""
    predicates: Dict[str, List[QueryCondition]] = field(default_factory=dict)
    group_by: List[str] = field(default_factory=list)
    order_by: List[Tuple[str, str]] = field(default_factory=list)
    clauses: List[Tuple[str, Any]] = field(default_factory=list)
    limit: Optional[int] = None
    select: List[Projection] = field(default_factory=list)
    allow_filtering: bool = True

    @property
    def conditions(self) -> List[QueryCondition]:
        """All conditions in predicate order"""
        return [c for conditions in self.predicates.values() for c in conditions]

    def add_condition(self, condition: QueryCondition):
        self.predicates.setdefault(condition.field, []).append(condition)

    def without_limit(self) -> "EngineQuery":
        return replace(self, limit=None)

    def with_limit(self, limit: int) -> "EngineQuery":
        return replace(self, limit=limit)

    def to_dict(self) -> Dict[str, Any]:
        """Convert query to dictionary representation"""
        query_dict = {
            'conditions': [c.to_dict() for c in self.conditions],
        }
        if self.group_by:
            query_dict['group_by'] = list(self.group_by)
        if self.order_by:
            query_dict['order_by'] = list(self.order_by)
        if self.clauses:
            query_dict['clauses'] = list(self.clauses)
        if self.limit is not None:
            query_dict['limit'] = self.limit
        if self.select:
            query_dict['select'] = [(p.field, p.alias) for p in self.select]
        return query_dict

    def __repr__(self):
        parts = ["EngineQuery"]
        if self.conditions:
            parts.append(f"where({', '.join(str(c) for c in self.conditions)})")
        if self.group_by:
            parts.append(f"group_by({', '.join(self.group_by)})")
        if self.order_by:
            parts.append(f"order_by({', '.join(f'{f} {d}' for f, d in self.order_by)})")
        if self.limit:
            parts.append(f"limit({self.limit})")
        return '.'.join(parts)


def _positive_limit(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if value <= 0:
        return None
    return int(value)


def _field_list(value: Any, option: str) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [f for f in re.split(r"[\s,]+", value) if f]
    if isinstance(value, (list, tuple)):
        return [str(f) for f in value]
    raise QueryError(f"'{option}' must be a list of field names")


class FilterTranslator:
    """Translates filter descriptions into EngineQuery objects.

    Recognised options: ``q`` (or ``query``), ``search`` with
    ``searchFields``, ``limit`` and ``select``.
    """

    def translate(self, filters: Optional[Dict[str, Any]]) -> EngineQuery:
        query = EngineQuery()
        if not filters:
            return query

        # Search degrades to one LIKE per listed field
        search = filters.get("search")
        search_fields: List[str] = []
        if isinstance(search, str) and search != "":
            search_fields = _field_list(filters.get("searchFields"), "searchFields")
            if not search_fields:
                raise UnsupportedSearchError()

        q = filters.get("q")
        if q is None:
            q = filters.get("query")
        if q:
            if not isinstance(q, dict):
                raise QueryError("'q' must be a mapping of field names to values")
            self._apply_q(query, q)

        if search_fields:
            pattern = search if "%" in search else f"%{search}%"
            for search_field in search_fields:
                query.add_condition(QueryCondition(search_field, QueryOperator.LIKE, pattern))

        limit = _positive_limit(filters.get("limit"))
        if limit is not None:
            query.limit = limit

        select = filters.get("select")
        if select:
            if isinstance(select, str):
                select = [select]
            query.select = [Projection.parse(p) for p in select]

        return query

    def translate_query(self, q: Optional[Dict[str, Any]]) -> EngineQuery:
        """Translate a bare ``q`` mapping"""
        return self.translate({"q": q or {}})

    def _apply_q(self, query: EngineQuery, q: Dict[str, Any]):
        for key, value in q.items():
            if key == "$groupby":
                query.group_by = _field_list(value, "$groupby")
            elif key == "$limit":
                query.limit = _positive_limit(value)
            elif key == "$orderby":
                query.order_by = self._order_by(value)
            elif key.startswith("$"):
                if not _OPERATOR_NAME.match(key):
                    raise QueryError(f"Invalid query clause: {key!r}")
                logger.warning(f"Passing unrecognized query clause '{key}' through to the engine unchecked")
                query.clauses.append((key, value))
            elif self._is_operator_object(value):
                for op_key, op_value in value.items():
                    query.add_condition(self._build_condition(key, op_key, op_value))
            else:
                query.add_condition(QueryCondition(key, QueryOperator.EQ, value))

    @staticmethod
    def _order_by(value: Any) -> List[Tuple[str, str]]:
        if not isinstance(value, dict) or not value:
            raise QueryError("'$orderby' expects a mapping of '$asc' or '$desc' to field names")
        order = []
        for direction, fields in value.items():
            if direction not in ORDER_DIRECTIONS:
                raise QueryError(f"Unsupported ordering direction: {direction!r}")
            for order_field in _field_list(fields, "$orderby"):
                order.append((order_field, ORDER_DIRECTIONS[direction]))
        return order

    @staticmethod
    def _is_operator_object(value: Any) -> bool:
        if not isinstance(value, dict) or not value:
            return False
        operator_keys = [k for k in value if isinstance(k, str) and k.startswith("$")]
        if not operator_keys:
            return False
        if len(operator_keys) != len(value):
            raise QueryError(f"Cannot mix operators and literal keys: {sorted(value)}")
        return True

    def _build_condition(self, field_name: str, op_key: str, value: Any) -> QueryCondition:
        operator = OPERATOR_KEYS.get(op_key)
        if operator == QueryOperator.IN:
            if not isinstance(value, (list, tuple, set, frozenset)):
                raise QueryError(f"'$in' on '{field_name}' expects a list of values")
            return QueryCondition(field_name, operator, list(value))
        if operator is not None:
            return QueryCondition(field_name, operator, value)

        if not _OPERATOR_NAME.match(op_key):
            raise QueryError(f"Invalid operator name: {op_key!r}")
        logger.warning(f"Passing unrecognized operator '{op_key}' on '{field_name}' through to the engine unchecked")
        return QueryCondition(field_name, QueryOperator.PASSTHROUGH, value, raw_operator=op_key)
