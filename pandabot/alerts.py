"""Periodic evaluation of percentage price alerts."""

import time
from typing import Awaitable, Callable, Dict, Iterable, List, Optional

from . import api, config, db
from .models import Alert
from .notifier import Notifier

QuoteFetcher = Callable[[Iterable[str]], Awaitable[Optional[Dict[str, api.Quote]]]]

UP_ARROW = "\U0001f53a"
DOWN_ARROW = "\U0001f53b"


def should_trigger(threshold: float, change: float) -> bool:
    """Return ``True`` when ``change`` reaches the signed ``threshold``.

    Positive thresholds watch for rises, negative ones for falls. A zero
    threshold has no direction and never triggers.
    """
    if threshold > 0:
        return change >= threshold
    if threshold < 0:
        return change <= threshold
    return False


def cooldown_passed(
    last_triggered: Optional[float], now: float, cooldown: Optional[float] = None
) -> bool:
    """Return ``True`` if more than ``cooldown`` seconds passed since the last alert."""
    if last_triggered is None:
        return True
    cooldown = config.ALERT_COOLDOWN if cooldown is None else cooldown
    return now - last_triggered > cooldown


def format_alert_message(alert: Alert, price: float, change: float) -> str:
    arrow = UP_ARROW if change >= 0 else DOWN_ARROW
    return (
        f"{arrow} Price alert: {alert.symbol}\n"
        f"Base: ${alert.base_price:,.8g}\n"
        f"Now: ${price:,.8g}\n"
        f"Change: {change:+.2f}% (target {alert.threshold:+g}%)\n"
        f"Alert #{alert.short_id}"
    )


class AlertEvaluator:
    """Check every active alert against fresh quotes.

    Parameters
    ----------
    notifier:
        Delivers the trigger messages.
    fetch_quotes:
        Coroutine returning quotes keyed by symbol, or ``None`` when the
        feed is unavailable. Defaults to the Binance ticker feed.
    cooldown:
        Minimum seconds between two notifications of the same alert.
    """

    def __init__(
        self,
        notifier: Notifier,
        fetch_quotes: Optional[QuoteFetcher] = None,
        cooldown: Optional[float] = None,
    ) -> None:
        self.notifier = notifier
        self.fetch_quotes = fetch_quotes or api.get_binance_quotes
        self.cooldown = config.ALERT_COOLDOWN if cooldown is None else cooldown

    async def run(self, now: Optional[float] = None) -> int:
        """Evaluate all active alerts once and return the number notified."""
        now = time.time() if now is None else now
        try:
            alerts = await db.list_active_alerts()
        except Exception:
            config.logger.exception("alert check aborted: could not load alerts")
            return 0
        if not alerts:
            return 0

        by_symbol: Dict[str, List[Alert]] = {}
        for alert in alerts:
            by_symbol.setdefault(alert.symbol, []).append(alert)

        try:
            quotes = await self.fetch_quotes(list(by_symbol))
        except Exception:
            config.logger.exception("alert check aborted: quote fetch failed")
            return 0
        if quotes is None:
            config.logger.error("alert check aborted: no quotes available")
            return 0

        sent = 0
        for symbol, symbol_alerts in by_symbol.items():
            quote = quotes.get(symbol)
            if quote is None:
                config.logger.warning(
                    "no quote for %s, skipping %s alerts", symbol, len(symbol_alerts)
                )
                continue
            for alert in symbol_alerts:
                try:
                    if await self._evaluate(alert, quote.price, now):
                        sent += 1
                except Exception:
                    config.logger.exception("alert #%s evaluation failed", alert.short_id)
        config.logger.info(
            "alert check done: %s alerts, %s symbols, %s notified",
            len(alerts),
            len(by_symbol),
            sent,
        )
        return sent

    async def _evaluate(self, alert: Alert, price: float, now: float) -> bool:
        if alert.base_price <= 0:
            config.logger.warning(
                "alert #%s has no usable base price", alert.short_id
            )
            await db.update_alert_observation(alert.id, price)
            return False
        change = alert.change_percent(price)
        if not (
            should_trigger(alert.threshold, change)
            and cooldown_passed(alert.last_triggered, now, self.cooldown)
        ):
            await db.update_alert_observation(alert.id, price)
            return False
        delivered = True
        try:
            await self.notifier.send(
                alert.user_id, format_alert_message(alert, price, change)
            )
        except Exception as exc:
            delivered = False
            config.logger.error(
                "alert #%s notification to %s failed: %r",
                alert.short_id,
                alert.user_id,
                exc,
            )
        await db.update_alert_observation(alert.id, price, now)
        if delivered:
            config.logger.info(
                "alert #%s triggered for user %s: %s %+.2f%%",
                alert.short_id,
                alert.user_id,
                alert.symbol,
                change,
            )
        return delivered
