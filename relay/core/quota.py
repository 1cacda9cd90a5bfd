"""Daily request quota per user identity.

Records live in process memory only. The store is bounded: once it tracks
``max_users`` identities the least recently seen one is dropped, which at worst
hands that user a fresh allowance for the day.
"""

from __future__ import annotations

import asyncio
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional


DEFAULT_DAILY_LIMIT = 50


def utc_today() -> str:
    return datetime.now(timezone.utc).date().isoformat()


@dataclass
class UserQuotaRecord:
    user_id: str
    count: int
    date: str
    pending: int = 0


@dataclass(frozen=True)
class QuotaDecision:
    user_id: str
    allowed: bool
    exempt: bool = False
    reserved: bool = False
    date: Optional[str] = None


class RateLimitStore:
    def __init__(
        self,
        daily_limit: int = DEFAULT_DAILY_LIMIT,
        max_users: Optional[int] = 10_000,
        today: Callable[[], str] = utc_today,
    ) -> None:
        self.daily_limit = daily_limit
        self.max_users = max_users
        self._today = today
        self._records: "OrderedDict[str, UserQuotaRecord]" = OrderedDict()
        self._lock = asyncio.Lock()

    def _record(self, user_id: str) -> UserQuotaRecord:
        today = self._today()
        record = self._records.get(user_id)
        if record is None:
            record = UserQuotaRecord(user_id=user_id, count=0, date=today)
            self._records[user_id] = record
            if self.max_users is not None:
                while len(self._records) > self.max_users:
                    self._records.popitem(last=False)
        else:
            self._records.move_to_end(user_id)
        if record.date != today:
            # reservations from an earlier day belong to that day
            record.count = 0
            record.pending = 0
            record.date = today
        return record

    async def check_and_consume(self, user_id: str, is_exempt: bool = False) -> QuotaDecision:
        """Admit or deny one request for ``user_id``.

        An admitted, non-exempt request holds a reservation until the caller
        either commits it (work succeeded) or releases it (work failed).
        """
        async with self._lock:
            record = self._record(user_id)
            if is_exempt:
                return QuotaDecision(user_id=user_id, allowed=True, exempt=True)
            if record.count + record.pending >= self.daily_limit:
                return QuotaDecision(user_id=user_id, allowed=False)
            record.pending += 1
            return QuotaDecision(user_id=user_id, allowed=True, reserved=True, date=record.date)

    async def commit(self, decision: QuotaDecision) -> None:
        if not decision.reserved:
            return
        async with self._lock:
            record = self._record(decision.user_id)
            if record.date != decision.date:
                return
            record.pending = max(0, record.pending - 1)
            record.count += 1

    async def release(self, decision: QuotaDecision) -> None:
        if not decision.reserved:
            return
        async with self._lock:
            record = self._records.get(decision.user_id)
            if record is not None and record.date == decision.date:
                record.pending = max(0, record.pending - 1)

    def usage(self, user_id: str) -> int:
        record = self._records.get(user_id)
        if record is None or record.date != self._today():
            return 0
        return record.count

    def __len__(self) -> int:
        return len(self._records)
