from typing import Any, Iterable, Iterator, NamedTuple, Optional, Tuple


def metamodel_model(metamodel) -> Any:
    """Model part of a metamodel (bare model or ``(model, metadata)``)."""
    return metamodel[0] if isinstance(metamodel, tuple) else metamodel


def metamodel_metadata(metamodel) -> Any:
    """Metadata part of a metamodel, ``None`` for the bare shape."""
    return metamodel[1] if isinstance(metamodel, tuple) else None


class HistoryRecord(NamedTuple):
    """One evaluated configuration and the strategy's entry for it."""
    model: Any
    result: Any


class History:
    """
    Immutable, append-only record of every evaluation in a logical search.

    ``extend`` returns a new History; the receiver is never modified, so a
    History handed out earlier keeps its contents when the search grows.
    """

    __slots__ = ('_records',)

    def __init__(self, records: Iterable[Tuple[Any, Any]] = ()):
        self._records = tuple(HistoryRecord(*r) for r in records)

    @classmethod
    def coerce(cls, history: Optional["History"]) -> "History":
        """Treat ``None`` as an empty history."""
        return cls() if history is None else history

    def extend(self, records: Iterable[Tuple[Any, Any]]) -> "History":
        new = tuple(HistoryRecord(*r) for r in records)
        if not new:
            return self
        return History(self._records + new)

    @property
    def records(self) -> Tuple[HistoryRecord, ...]:
        return self._records

    @property
    def results(self) -> Tuple[Any, ...]:
        return tuple(r.result for r in self._records)

    @property
    def models(self) -> Tuple[Any, ...]:
        return tuple(r.model for r in self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[HistoryRecord]:
        return iter(self._records)

    def __getitem__(self, index):
        if isinstance(index, slice):
            return History(self._records[index])
        return self._records[index]

    def __eq__(self, other) -> bool:
        if not isinstance(other, History):
            return NotImplemented
        # Models rarely define value equality; entries carry the comparable content
        return self.results == other.results

    def __repr__(self) -> str:
        return f"History(n_records={len(self._records)})"
