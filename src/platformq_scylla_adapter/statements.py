"""CQL statement objects rendered with bind markers"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .query import EngineQuery, QueryOperator, clause_keyword


def quote_identifier(name: str) -> str:
    """Quote a CQL identifier, keeping its case"""
    return '"' + str(name).replace('"', '""') + '"'


@dataclass(frozen=True)
class TableRef:
    """Keyspace-qualified table name"""
    keyspace: str
    name: str

    def __str__(self):
        return f"{quote_identifier(self.keyspace)}.{quote_identifier(self.name)}"


class CqlStatement:
    """Base class for statements executed through the session"""

    table: TableRef
    conditional = False

    def to_cql(self) -> Tuple[str, List[Any]]:
        raise NotImplementedError

    def __repr__(self):
        cql, params = self.to_cql()
        return f"<{self.__class__.__name__} {cql} {params!r}>"


def _key_clause(key: Dict[str, Any], params: List[Any]) -> str:
    parts = []
    for name, value in key.items():
        parts.append(f"{quote_identifier(name)} = ?")
        params.append(value)
    return " AND ".join(parts)


@dataclass(repr=False)
class SelectStatement(CqlStatement):
    table: TableRef
    query: EngineQuery = field(default_factory=EngineQuery)

    def to_cql(self) -> Tuple[str, List[Any]]:
        if self.query.select:
            projections = []
            for projection in self.query.select:
                column = quote_identifier(projection.field)
                if projection.alias:
                    column += f" AS {quote_identifier(projection.alias)}"
                projections.append(column)
            fields = ", ".join(projections)
        else:
            fields = "*"

        cql = f"SELECT {fields} FROM {self.table}"
        params: List[Any] = []

        where_parts = []
        for condition in self.query.conditions:
            column = quote_identifier(condition.field)
            if condition.operator == QueryOperator.IN:
                where_parts.append(f"{column} IN ?")
            else:
                where_parts.append(f"{column} {condition.cql_operator} ?")
            params.append(condition.value)
        if where_parts:
            cql += " WHERE " + " AND ".join(where_parts)

        if self.query.group_by:
            cql += " GROUP BY " + ", ".join(quote_identifier(f) for f in self.query.group_by)

        if self.query.order_by:
            cql += " ORDER BY " + ", ".join(f"{quote_identifier(f)} {d}" for f, d in self.query.order_by)

        # Unrecognised clauses go before LIMIT, where PER PARTITION LIMIT belongs
        for raw, value in self.query.clauses:
            cql += f" {clause_keyword(raw)} ?"
            params.append(value)

        if self.query.limit:
            cql += " LIMIT ?"
            params.append(self.query.limit)

        if self.query.allow_filtering:
            cql += " ALLOW FILTERING"

        return cql, params


@dataclass(repr=False)
class InsertStatement(CqlStatement):
    table: TableRef
    values: Dict[str, Any]
    ttl: Optional[int] = None
    if_not_exists: bool = False

    @property
    def conditional(self) -> bool:
        return self.if_not_exists

    def to_cql(self) -> Tuple[str, List[Any]]:
        columns = ", ".join(quote_identifier(c) for c in self.values)
        placeholders = ", ".join("?" for _ in self.values)
        cql = f"INSERT INTO {self.table} ({columns}) VALUES ({placeholders})"
        params = list(self.values.values())
        if self.if_not_exists:
            cql += " IF NOT EXISTS"
        if self.ttl:
            cql += " USING TTL ?"
            params.append(self.ttl)
        return cql, params


@dataclass(repr=False)
class UpdateStatement(CqlStatement):
    table: TableRef
    key: Dict[str, Any]
    values: Dict[str, Any]
    ttl: Optional[int] = None
    if_exists: bool = False

    @property
    def conditional(self) -> bool:
        return self.if_exists

    def to_cql(self) -> Tuple[str, List[Any]]:
        params: List[Any] = []
        cql = f"UPDATE {self.table}"
        if self.ttl:
            cql += " USING TTL ?"
            params.append(self.ttl)
        set_clauses = []
        for name, value in self.values.items():
            set_clauses.append(f"{quote_identifier(name)} = ?")
            params.append(value)
        cql += " SET " + ", ".join(set_clauses)
        cql += " WHERE " + _key_clause(self.key, params)
        if self.if_exists:
            cql += " IF EXISTS"
        return cql, params


@dataclass(repr=False)
class DeleteStatement(CqlStatement):
    table: TableRef
    key: Dict[str, Any]
    if_exists: bool = False

    @property
    def conditional(self) -> bool:
        return self.if_exists

    def to_cql(self) -> Tuple[str, List[Any]]:
        params: List[Any] = []
        cql = f"DELETE FROM {self.table} WHERE " + _key_clause(self.key, params)
        if self.if_exists:
            cql += " IF EXISTS"
        return cql, params
