"""
Filter policy models for MySQL CDC sessions
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, Iterable, Optional, Tuple

from ..exceptions import ConfigurationError


class SchemaRuleKind(Enum):
    """Kinds of per-schema table rules"""
    ALL_TABLES = "all_tables"
    TABLE_LIST = "table_list"
    PREDICATE = "predicate"


@dataclass(frozen=True)
class SchemaRule:
    """Rule deciding which tables of one schema a filter applies to"""
    kind: SchemaRuleKind
    tables: Tuple[str, ...] = ()
    predicate: Optional[Callable[[str], bool]] = None

    @classmethod
    def all_tables(cls) -> 'SchemaRule':
        return cls(SchemaRuleKind.ALL_TABLES)

    @classmethod
    def table_list(cls, tables: Iterable[str]) -> 'SchemaRule':
        # keep the caller's order, drop duplicates
        return cls(SchemaRuleKind.TABLE_LIST, tables=tuple(dict.fromkeys(tables)))

    @classmethod
    def matching(cls, predicate: Callable[[str], bool]) -> 'SchemaRule':
        return cls(SchemaRuleKind.PREDICATE, predicate=predicate)

    @classmethod
    def from_value(cls, value: Any) -> 'SchemaRule':
        """
        Build a rule from a raw option value

        Args:
            value: True (all tables), a list/tuple/set of table names,
                a callable taking a table name, or an existing SchemaRule

        Raises:
            ConfigurationError: If the value is none of the above
        """
        if isinstance(value, SchemaRule):
            return value
        if value is True:
            return cls.all_tables()
        if isinstance(value, (list, tuple, set, frozenset)):
            if not all(isinstance(table, str) for table in value):
                raise ConfigurationError("Table list rules must contain table names only")
            return cls.table_list(sorted(value) if isinstance(value, (set, frozenset)) else value)
        if callable(value):
            return cls.matching(value)
        raise ConfigurationError(f"Unsupported schema rule: {value!r}")

    def matches(self, table_name: str) -> bool:
        """Check whether the rule covers the given table"""
        if self.kind is SchemaRuleKind.ALL_TABLES:
            return True
        if self.kind is SchemaRuleKind.TABLE_LIST:
            return table_name in self.tables
        return bool(self.predicate(table_name))


def _event_set(value: Optional[Iterable[str]], option: str) -> Optional[FrozenSet[str]]:
    if value is None:
        return None
    if isinstance(value, str):
        raise ConfigurationError(f"'{option}' must be a list of event names")
    return frozenset(value)


def _schema_rules(value: Optional[Dict[str, Any]], option: str) -> Optional[Dict[str, SchemaRule]]:
    if value is None:
        return None
    if not isinstance(value, dict):
        raise ConfigurationError(f"'{option}' must map schema names to rules")
    return {schema: SchemaRule.from_value(rule) for schema, rule in value.items()}


@dataclass(frozen=True)
class FilterPolicy:
    """
    Event type and schema/table inclusion rules

    A missing include set or map means everything is included; a present one
    narrows inclusion to exactly what it names. Exclusion always wins.
    """
    include_events: Optional[FrozenSet[str]] = None
    exclude_events: Optional[FrozenSet[str]] = None
    include_schema: Optional[Dict[str, SchemaRule]] = None
    exclude_schema: Optional[Dict[str, SchemaRule]] = None

    @classmethod
    def from_options(cls, include_events=None, exclude_events=None,
                     include_schema=None, exclude_schema=None, **_ignored) -> 'FilterPolicy':
        """Normalize raw filter options into a policy"""
        return cls(
            include_events=_event_set(include_events, 'include_events'),
            exclude_events=_event_set(exclude_events, 'exclude_events'),
            include_schema=_schema_rules(include_schema, 'include_schema'),
            exclude_schema=_schema_rules(exclude_schema, 'exclude_schema'),
        )
