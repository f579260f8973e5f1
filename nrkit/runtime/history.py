"""History containers used by the evolution driver."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping

import pyarrow as pa


class ColumnarBuffer:
    """Column-oriented record buffer.

    Rows are mappings; a column first seen in a later row is back-filled
    with ``None`` for the earlier rows, and columns missing from a row are
    filled with ``None``.
    """

    def __init__(self, columns: Iterable[str] | None = None) -> None:
        self._data: Dict[str, List[Any]] = {name: [] for name in (columns or ())}
        self._rows = 0

    @property
    def row_count(self) -> int:
        return self._rows

    def __len__(self) -> int:
        return self._rows

    def __bool__(self) -> bool:
        return self._rows > 0

    def columns(self) -> List[str]:
        return list(self._data)

    def _add_column(self, name: str) -> None:
        if name not in self._data:
            self._data[name] = [None] * self._rows

    def append_row(self, record: Mapping[str, Any]) -> None:
        for name in record:
            self._add_column(name)
        for name, values in self._data.items():
            values.append(record.get(name))
        self._rows += 1

    def extend_rows(self, records: Iterable[Mapping[str, Any]]) -> None:
        for record in records:
            self.append_row(record)

    def extend_buffer(self, other: "ColumnarBuffer") -> None:
        if other is self:
            raise ValueError("Cannot extend ColumnarBuffer with itself")
        for name in other._data:
            self._add_column(name)
        for name, values in self._data.items():
            values.extend(other._data.get(name, [None] * other._rows))
        self._rows += other._rows

    def column(self, name: str) -> List[Any]:
        return list(self._data[name])

    def clear(self) -> None:
        for values in self._data.values():
            values.clear()
        self._rows = 0

    def to_records(self) -> List[Dict[str, Any]]:
        names = list(self._data)
        return [{name: self._data[name][row] for name in names} for row in range(self._rows)]

    def to_table(self, ensure_columns: Iterable[str] | None = None) -> pa.Table:
        """Return an Arrow table; ``ensure_columns`` come first and always exist."""

        leading = list(ensure_columns or ())
        names = leading + [name for name in self._data if name not in leading]
        return pa.Table.from_pydict(
            {name: self._data.get(name, [None] * self._rows) for name in names}
        )


@dataclass
class EvolutionHistory:
    """Per-step rows and per-element summaries collected by ``nrkit evolve``."""

    records: ColumnarBuffer = field(default_factory=ColumnarBuffer)
    diagnostics: List[Dict[str, Any]] = field(default_factory=list)
    final_states: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    wall_time_s: float = 0.0


__all__ = ["ColumnarBuffer", "EvolutionHistory"]
