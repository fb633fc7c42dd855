# Файл: media_archive/models/outcome.py

from __future__ import annotations

import enum
from typing import List, Optional

from pydantic import BaseModel

from media_archive.confirmation import ConfirmationDecision


class ItemStatus(str, enum.Enum):
    delivered = "delivered"
    degraded = "degraded"
    duplicate = "duplicate"
    invalid_source = "invalid_source"
    fetch_failed = "fetch_failed"
    store_failed = "store_failed"
    delivery_failed = "delivery_failed"


SUCCESS_STATUSES = frozenset({ItemStatus.delivered, ItemStatus.degraded})
FAILURE_STATUSES = frozenset({ItemStatus.fetch_failed, ItemStatus.store_failed, ItemStatus.delivery_failed})


class ItemOutcome(BaseModel):
    status: ItemStatus
    message: str
    record_id: Optional[int] = None
    file_name: Optional[str] = None

    @property
    def is_success(self) -> bool:
        return self.status in SUCCESS_STATUSES


class BatchReport(BaseModel):
    """Итог пакетной операции: счётчик успехов + строка на каждый элемент."""

    verb: str
    items: List[ItemOutcome] = []

    def add(self, outcome: ItemOutcome) -> ItemOutcome:
        self.items.append(outcome)
        return outcome

    @property
    def success_count(self) -> int:
        return sum(1 for item in self.items if item.is_success)

    @property
    def duplicate_count(self) -> int:
        return sum(1 for item in self.items if item.status is ItemStatus.duplicate)

    @property
    def failure_count(self) -> int:
        return sum(1 for item in self.items if item.status in FAILURE_STATUSES)

    def render(self) -> str:
        lines = [item.message for item in self.items]
        if self.success_count:
            lines.insert(0, f"Successfully {self.verb} {self.success_count} item(s)")
        return "\n".join(lines)


class ClearResult(BaseModel):
    # None = канал уже пуст, подтверждение не запрашивалось
    decision: Optional[ConfirmationDecision] = None
    removed: int = 0
