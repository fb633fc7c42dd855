import enum
from datetime import datetime, timedelta, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict

MAX_CONFIRM_TIMEOUT = 30.0


class ConfirmationDecision(str, enum.Enum):
    confirmed = "confirmed"
    cancelled = "cancelled"
    timed_out = "timed_out"


class AwaitingConfirmation(BaseModel):
    """
    Ожидание подтверждения очистки канала.

    Само ожидание (таймер, чтение ответа) выполняет внешний код;
    здесь только переход в одно из конечных решений.
    """

    model_config = ConfigDict(frozen=True)

    channel_id: str
    actor_id: str
    deadline: datetime
    keyword: str = "confirm"

    @classmethod
    def start(
        cls,
        channel_id: str,
        actor_id: str,
        timeout: float = MAX_CONFIRM_TIMEOUT,
        keyword: str = "confirm",
        now: Optional[datetime] = None,
    ) -> "AwaitingConfirmation":
        timeout = min(max(timeout, 0.0), MAX_CONFIRM_TIMEOUT)
        now = now or datetime.now(timezone.utc)
        return cls(channel_id=channel_id, actor_id=actor_id, deadline=now + timedelta(seconds=timeout), keyword=keyword)

    @property
    def timeout_ms(self) -> int:
        remaining = (self.deadline - datetime.now(timezone.utc)).total_seconds()
        return max(0, int(remaining * 1000))

    def resolve(self, reply: Optional[str], at: Optional[datetime] = None) -> ConfirmationDecision:
        at = at or datetime.now(timezone.utc)
        if reply is None or at > self.deadline:
            return ConfirmationDecision.timed_out
        if reply.strip() == self.keyword:
            return ConfirmationDecision.confirmed
        return ConfirmationDecision.cancelled
