"""
Filter service for MySQL CDC sessions
"""

from typing import Any, Dict, FrozenSet, Optional

from pymysqlreplication import event as binlog_event
from pymysqlreplication import row_event

from ..models.filters import FilterPolicy, SchemaRule

EVENT_SUFFIX = "Event"


def _strip_suffix(class_name: str) -> str:
    if class_name.endswith(EVENT_SUFFIX) and class_name != EVENT_SUFFIX:
        return class_name[:-len(EVENT_SUFFIX)]
    return class_name


def event_name(event: Any) -> str:
    """
    Name an event the way filter options refer to it

    The decoder's class name without its "Event" suffix, e.g. WriteRowsEvent
    becomes "WriteRows". Matching is case-sensitive.
    """
    return _strip_suffix(type(event).__name__)


def known_event_names() -> FrozenSet[str]:
    """Names of every event class the replication decoder can produce"""
    names = set()
    for module in (binlog_event, row_event):
        for value in vars(module).values():
            if isinstance(value, type) and issubclass(value, binlog_event.BinLogEvent):
                names.add(_strip_suffix(value.__name__))
    names.discard("BinLog")
    return frozenset(names)


class FilterService:
    """Applies a FilterPolicy to event names and schema/table pairs"""

    def __init__(self, policy: FilterPolicy = None):
        self.policy = policy or FilterPolicy()

    def skip_event(self, name: str) -> bool:
        """True if events of this type must be dropped"""
        includes = self.policy.include_events
        excludes = self.policy.exclude_events
        included = includes is None or name in includes
        excluded = excludes is not None and name in excludes
        return excluded or not included

    def skip_schema(self, schema_name: str, table_name: str) -> bool:
        """True if events for this schema/table pair must be dropped"""
        includes = self.policy.include_schema
        excludes = self.policy.exclude_schema or {}
        included = includes is None or self._rule_matches(includes, schema_name, table_name)
        excluded = self._rule_matches(excludes, schema_name, table_name)
        return excluded or not included

    @staticmethod
    def _rule_matches(rules: Dict[str, SchemaRule], schema_name: str, table_name: str) -> bool:
        rule: Optional[SchemaRule] = rules.get(schema_name)
        return rule is not None and rule.matches(table_name)
