import inspect
import logging
from typing import Any, Awaitable, Callable, Iterable, List, Union

from cafepos.schemas.stock import LowStockEvent, StockShortfallEvent

log = logging.getLogger(__name__)

StockEvent = Union[LowStockEvent, StockShortfallEvent]
Handler = Callable[[StockEvent], Union[None, Awaitable[Any]]]


def log_stock_event(event: StockEvent) -> None:
    """Default subscriber: writes every stock notification to the log."""
    if isinstance(event, LowStockEvent):
        log.warning(
            f"ALERT: Low stock for {event.item_type.value} {event.item_id}! "
            f"Qty: {event.quantity} (threshold {event.threshold})"
        )
    else:
        log.warning(
            f"OVERSELL: {event.item_type.value} {event.item_id} requested {event.requested}, "
            f"only {event.available} on hand (short {event.shortfall})"
        )


class StockEventDispatcher:
    """
    Routes stock events to subscribers (alerting UI, logs).

    Delivery is fire-and-forget: events are dispatched after the commit that
    produced them, and a failing subscriber is logged without affecting the
    caller or the other subscribers.
    """

    def __init__(self, handlers: Iterable[Handler] = ()):
        self._handlers: List[Handler] = list(handlers)

    def subscribe(self, handler: Handler) -> Handler:
        self._handlers.append(handler)
        return handler

    def unsubscribe(self, handler: Handler) -> None:
        if handler in self._handlers:
            self._handlers.remove(handler)

    async def dispatch(self, event: StockEvent) -> None:
        for handler in list(self._handlers):
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                log.error(f"Stock event handler {getattr(handler, '__name__', handler)} failed for {event.kind}: {e}")

    async def dispatch_all(self, events: Iterable[StockEvent]) -> None:
        for event in events:
            await self.dispatch(event)
