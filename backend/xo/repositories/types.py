"""Shared repository result types."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from xo.domain import Prediction
from xo.errors import PartialViewResolutionFailure


class ViewName(str, Enum):
    OPEN = "open"
    MATCHED = "matched"
    OWNED = "owned"


@dataclass(frozen=True, slots=True)
class ViewSnapshot:
    """Content of one view as of its last refresh.

    ``total`` is the ledger's count for the listing, which may differ from
    ``len(records)`` (pagination, expired or unresolvable ids). ``error`` is
    set when the id list itself could not be fetched; ``records`` then still
    holds the previous content.
    """

    records: tuple[Prediction, ...] = ()
    total: int = 0
    offset: int = 0
    failures: tuple[PartialViewResolutionFailure, ...] = ()
    refreshed_at: datetime | None = None
    error: str | None = None

    def get(self, prediction_id: int) -> Prediction | None:
        for record in self.records:
            if record.id == prediction_id:
                return record
        return None

    @property
    def ids(self) -> tuple[int, ...]:
        return tuple(record.id for record in self.records)


__all__ = ["ViewName", "ViewSnapshot"]
