"""Query builder: split a configured base query and resolve the filter clause.

The base query is configured once, e.g.::

    SELECT id, name, email FROM users WHERE active = 1 ORDER BY id

and is reduced to its projection (``SELECT id, name, email``) and source
(``FROM users``). Any filter, grouping, ordering, or limit in the base query
is dropped; the effective filter comes from the caller override or the
configured default instead.
"""

import re
from dataclasses import dataclass

from batch_export.lib.export_engine.errors import ConfigurationError

_FROM_RE = re.compile(r"\bFROM\b", re.IGNORECASE)
_FROM_END_RE = re.compile(r"\b(?:WHERE|GROUP\s+BY|HAVING|ORDER\s+BY|LIMIT)\b", re.IGNORECASE)
_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_.]*$")


@dataclass(frozen=True)
class SortKey:
    """Single-column ordering used for paginated reads."""

    column: str
    direction: str = "ASC"


@dataclass(frozen=True)
class QuerySpec:
    """Resolved query for one export job."""

    select_clause: str
    from_clause: str
    where_clause: str
    sort_key: SortKey

    def to_sql(self) -> str:
        """Render the unpaged query, mainly for logging."""
        parts = [self.select_clause, self.from_clause]
        if self.where_clause:
            parts.append(f"WHERE {self.where_clause}")
        parts.append(f"ORDER BY {self.sort_key.column} {self.sort_key.direction}")
        return " ".join(parts)


def _require_base_query(base_query: str | None) -> str:
    if base_query is None or not base_query.strip():
        msg = "Base query cannot be null or empty"
        raise ConfigurationError(msg)
    return base_query


def _find_from(base_query: str) -> re.Match[str]:
    match = _FROM_RE.search(base_query)
    if match is None:
        msg = "Base query must contain FROM clause"
        raise ConfigurationError(msg)
    return match


def extract_select_clause(base_query: str | None) -> str:
    """Return the projection part of the base query (everything before FROM).

    Raises:
        ConfigurationError: If the query is empty, has no FROM, or has
            nothing before it.
    """
    query = _require_base_query(base_query)
    select_clause = query[: _find_from(query).start()].strip()
    if not select_clause:
        msg = f"Base query has an empty select clause: {query!r}"
        raise ConfigurationError(msg)
    return select_clause


def extract_from_clause(base_query: str | None) -> str:
    """Return ``"FROM <source>"`` for the base query.

    The source is the text between ``FROM`` and the first of ``WHERE``,
    ``GROUP BY``, ``HAVING``, ``ORDER BY`` or ``LIMIT`` (case-insensitive),
    or the end of the query when none of them follows.

    Raises:
        ConfigurationError: If the query is empty, has no FROM, or names
            no source after it.
    """
    query = _require_base_query(base_query)
    after_from = query[_find_from(query).end() :]
    end = _FROM_END_RE.search(after_from)
    source = (after_from[: end.start()] if end else after_from).strip()
    if not source:
        msg = f"Base query has an empty FROM clause: {query!r}"
        raise ConfigurationError(msg)
    return f"FROM {source}"


def resolve_where_clause(where_clause: str | None, default_where_clause: str | None) -> str:
    """Pick the caller's filter when it is non-blank, else the default."""
    if where_clause is not None and where_clause.strip():
        return where_clause.strip()
    return (default_where_clause or "").strip()


def build_full_query(base_query: str, where_clause: str | None, default_where_clause: str | None) -> str:
    """Append the resolved filter to the base query verbatim."""
    resolved = resolve_where_clause(where_clause, default_where_clause)
    return f"{base_query} {resolved}".strip()


def resolve(
    base_query: str | None,
    where_clause_override: str | None,
    default_where_clause: str | None,
    sort_key: str = "id",
) -> QuerySpec:
    """Build the QuerySpec for one job.

    Args:
        base_query: Configured SELECT statement containing FROM.
        where_clause_override: Caller-supplied filter fragment, may be None.
        default_where_clause: Configured fallback filter, may be empty.
        sort_key: Column used for stable ascending pagination.

    Returns:
        The resolved QuerySpec.

    Raises:
        ConfigurationError: If the base query or sort key is unusable.
    """
    if not _IDENTIFIER_RE.match(sort_key or ""):
        msg = f"Invalid sort key column: {sort_key!r}"
        raise ConfigurationError(msg)
    return QuerySpec(
        select_clause=extract_select_clause(base_query),
        from_clause=extract_from_clause(base_query),
        where_clause=resolve_where_clause(where_clause_override, default_where_clause),
        sort_key=SortKey(column=sort_key),
    )
