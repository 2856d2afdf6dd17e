"""Event routing and the sequential indexer loop."""

import threading
from collections import Counter
from collections.abc import Callable, Iterable
from typing import Any

from minipool_indexer.contracts import ContractReader
from minipool_indexer.handlers import (
    HandlerContext,
    handle_finalised_minipool_count_incremented,
    handle_minipool_created,
    handle_minipool_destroyed,
    handle_node_registered,
)
from minipool_indexer.models import (
    FinalisedMinipoolCountIncremented,
    HandlerResult,
    MinipoolCreated,
    MinipoolDestroyed,
    NodeRegistered,
    Outcome,
)
from minipool_indexer.store import EntityStore
from minipool_indexer.tracking import SubscriptionRegistrar

Handler = Callable[[Any, HandlerContext], HandlerResult]

DEFAULT_HANDLERS: dict[type, Handler] = {
    NodeRegistered: handle_node_registered,
    MinipoolCreated: handle_minipool_created,
    MinipoolDestroyed: handle_minipool_destroyed,
    FinalisedMinipoolCountIncremented: handle_finalised_minipool_count_incremented,
}


class UnroutableEventError(TypeError):
    """An event type reached the router that no handler is registered for."""


class EventRouter:
    """Forwards each event to the one handler registered for its type."""

    def __init__(self, handlers: dict[type, Handler] | None = None) -> None:
        self.handlers = dict(DEFAULT_HANDLERS if handlers is None else handlers)

    def route(self, event: Any, ctx: HandlerContext) -> HandlerResult:
        handler = self.handlers.get(type(event))
        if handler is None:
            raise UnroutableEventError(f"No handler registered for {type(event).__name__}")
        return handler(event, ctx)


class Indexer:
    """
    Applies events to the store one at a time.

    `process` holds a lock for the whole handler invocation, so no handler ever
    observes another handler's intermediate state, even with several feeding threads.
    Contract read errors propagate out of `process` with nothing saved for that event.
    """

    def __init__(
        self,
        store: EntityStore,
        reader: ContractReader,
        registrar: SubscriptionRegistrar,
        *,
        router: EventRouter | None = None,
    ) -> None:
        self.ctx = HandlerContext(store=store, reader=reader, registrar=registrar)
        self.router = router or EventRouter()
        self.outcomes: Counter[Outcome] = Counter()
        self._lock = threading.Lock()

    def process(self, event: Any) -> HandlerResult:
        with self._lock:
            result = self.router.route(event, self.ctx)
            self.outcomes[result.outcome] += 1
            return result

    def process_all(self, events: Iterable[Any]) -> list[HandlerResult]:
        return [self.process(event) for event in events]
