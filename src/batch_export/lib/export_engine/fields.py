"""Field extraction shared by the header line and every data line."""

from collections.abc import Mapping, Sequence
from typing import Any

# Default exported fields, in output order
DEFAULT_FIELDS = ["id", "name", "email"]

# Fields that may be absent from the select clause; written as empty
OPTIONAL_FIELDS = frozenset({"email"})


class FieldExtractor:
    """Maps a row to its ordered field values.

    The same instance renders the header, so header and data columns always
    line up.
    """

    def __init__(self, fields: Sequence[str] | None = None, *, optional: frozenset[str] = OPTIONAL_FIELDS) -> None:
        self.fields = list(DEFAULT_FIELDS if fields is None else fields)
        if not self.fields:
            msg = "At least one export field is required"
            raise ValueError(msg)
        self._optional = optional

    def extract(self, row: Mapping[str, Any]) -> tuple[Any, ...]:
        """Return the row's values in field order.

        Raises:
            KeyError: If a required field is missing from the row.
        """
        values = []
        for name in self.fields:
            if name in row:
                values.append(row[name])
            elif name in self._optional:
                values.append(None)
            else:
                msg = f"Row has no column '{name}'"
                raise KeyError(msg)
        return tuple(values)

    def header_line(self, delimiter: str = "\t") -> str:
        return delimiter.join(self.fields)
