"""Rotation of CoinMarketCap API keys across a pool of free-tier accounts."""

import time
from dataclasses import dataclass
from typing import List, Optional

from . import config

USAGE_CAP = 0.9
DAY = 86400


@dataclass
class KeySlot:
    """One API credential plus its usage bookkeeping."""

    key: str
    requests_used: int = 0
    requests_limit: int = 10000
    is_blocked: bool = False
    reset_time: float = 0.0

    @property
    def usable(self) -> bool:
        return (
            not self.is_blocked
            and self.requests_used < USAGE_CAP * self.requests_limit
        )


class KeyManager:
    """Pick the CoinMarketCap key to use for the next request.

    The current slot is kept until it is blocked or reaches 90% of its soft
    limit, then the manager moves to the next usable slot in circular order.
    State lives in memory only; a restart starts every slot from zero.
    """

    def __init__(
        self,
        keys: List[str],
        active: int = 1,
        requests_limit: int = 10000,
        now: Optional[float] = None,
    ) -> None:
        if not keys:
            raise ValueError("No API keys available")
        now = time.time() if now is None else now
        self.slots = [
            KeySlot(key, 0, requests_limit, False, now + DAY) for key in keys
        ]
        self.current = min(max(active, 1), len(self.slots)) - 1
        config.logger.info(
            "cmc key manager ready with %s keys, starting at key %s",
            len(self.slots),
            self.current + 1,
        )

    @property
    def current_slot(self) -> KeySlot:
        return self.slots[self.current]

    def get_active_key(self) -> str:
        """Return the key for the next request, rotating if needed.

        When every slot is blocked or over the cap the current key is
        returned anyway and the failure is only logged.
        """
        if not self.current_slot.usable:
            self._rotate()
        return self.current_slot.key

    def _rotate(self) -> None:
        count = len(self.slots)
        for step in range(1, count + 1):
            index = (self.current + step) % count
            if self.slots[index].usable:
                if index != self.current:
                    config.logger.info(
                        "rotating cmc key %s -> %s", self.current + 1, index + 1
                    )
                self.current = index
                return
        config.logger.error(
            "all %s cmc api keys are unavailable, staying on key %s",
            count,
            self.current + 1,
        )

    def increment_request_count(self) -> None:
        self.current_slot.requests_used += 1

    def mark_as_blocked(self) -> None:
        slot = self.current_slot
        slot.is_blocked = True
        config.logger.warning(
            "cmc key %s blocked after %s requests",
            self.current + 1,
            slot.requests_used,
        )

    def reset_daily(self, now: Optional[float] = None) -> None:
        """Clear usage counters and blocks on every slot."""
        now = time.time() if now is None else now
        for slot in self.slots:
            slot.requests_used = 0
            slot.is_blocked = False
            slot.reset_time = now + DAY
        config.logger.info("cmc key usage reset for %s keys", len(self.slots))

    def get_stats(self) -> List[dict]:
        """Return a snapshot of every slot for reporting."""
        return [
            {
                "key_number": index + 1,
                "requests_used": slot.requests_used,
                "requests_limit": slot.requests_limit,
                "usage_percent": (
                    round(slot.requests_used / slot.requests_limit * 100, 2)
                    if slot.requests_limit
                    else 0.0
                ),
                "is_blocked": slot.is_blocked,
                "reset_time": slot.reset_time,
                "active": index == self.current,
            }
            for index, slot in enumerate(self.slots)
        ]
