"""Tunable settings of the discovery and data access layers."""

from __future__ import annotations

from dataclasses import dataclass, field

MAX_SAFE_INTEGER = 2**53 - 1
"""Largest integer that survives a round trip through a double precision float."""

DEFAULT_BULK_METHOD = "getAllDataForKontext"

LOGGING_METHOD_FRAGMENTS = frozenset(
    {
        "logs",
        "newlogssince",
        "loggerconfig",
        "logsequence",
        "logsbylevel",
        "logslevel",
        "logsconfig",
        "logconfig",
        "loginfo",
        "logwarn",
        "logerror",
        "logdebug",
        "clearalllogs",
        "cleanlogs",
        "testlogsequence",
        "updateloggerconfig",
    }
)


@dataclass(frozen=True)
class MapperConfig:
    """Settings for one connection.

    Attributes:
        bulk_method: Name of the privileged procedure returning all data at once.
        counter_prefixes: Field name prefixes of bulk data that hold counters, not data.
        logging_fragments: Lowercase name fragments of logging procedures to hide.
        query_prefixes: Name prefixes that mark a procedure as query when the description
            carries no access annotation.
        max_safe_integer: Bound of the integer range kept as plain numbers in form values.
    """

    bulk_method: str = DEFAULT_BULK_METHOD
    counter_prefixes: tuple[str, ...] = ("total",)
    logging_fragments: frozenset[str] = field(default=LOGGING_METHOD_FRAGMENTS)
    query_prefixes: tuple[str, ...] = ("get", "list", "find", "search", "check")
    max_safe_integer: int = MAX_SAFE_INTEGER


DEFAULT_CONFIG = MapperConfig()
