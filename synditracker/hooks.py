"""Extension points invoked at well-defined moments of the hub lifecycle.

Two kinds of registries:

- Listeners are notified after something happened (an event was stored, a
  key was generated). They receive a value and return nothing. A failing
  listener is logged and never breaks the operation that fired it.
- Filters transform a value before it is used (the aggregator allow-list,
  the sanitised ingestion payload). Each filter receives the output of the
  previous one. Filter errors propagate, because a half-applied transform
  would store data nobody asked for.

Usage:
    hooks = HookRegistry()
    hooks.after_store.register(lambda event: audit(event))
    hooks.aggregator_allowlist.register(lambda allowed: allowed + ["Inoreader"])
"""

import logging
from collections.abc import Callable
from typing import Any, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ListenerRegistry(Generic[T]):
    """Ordered set of callbacks receiving a single value."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._listeners: list[Callable[[T], Any]] = []

    def register(self, listener: Callable[[T], Any]) -> Callable[[T], Any]:
        """Add a listener; returns it so the method works as a decorator."""
        self._listeners.append(listener)
        return listener

    def unregister(self, listener: Callable[[T], Any]) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def __len__(self) -> int:
        return len(self._listeners)

    def fire(self, value: T) -> None:
        for listener in list(self._listeners):
            try:
                listener(value)
            except Exception as e:
                logger.error("Hook %s listener %r failed: %s", self.name, listener, e)


class FilterRegistry(Generic[T]):
    """Ordered chain of callbacks, each returning a replacement value."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._filters: list[Callable[[T], T]] = []

    def register(self, fn: Callable[[T], T]) -> Callable[[T], T]:
        self._filters.append(fn)
        return fn

    def unregister(self, fn: Callable[[T], T]) -> None:
        if fn in self._filters:
            self._filters.remove(fn)

    def __len__(self) -> int:
        return len(self._filters)

    def apply(self, value: T) -> T:
        for fn in self._filters:
            value = fn(value)
        return value


class HookRegistry:
    """All extension points of the hub, grouped on one object.

    Attributes:
        after_store: Stored ``SyndicationEvent``.
        key_generated: Newly issued ``SiteKey``.
        key_revoked: Id of a revoked key.
        key_deleted: Id of a deleted key.
        invalid_key_attempt: The rejected secret value.
        spike_detected: ``SpikeCheck`` whose count met the threshold.
        heartbeat_sent: ``WindowMetrics`` that were summarised.
        aggregator_allowlist: Filter over the allowed aggregator names.
        before_store: Filter over the sanitised ingestion payload dict.
    """

    def __init__(self) -> None:
        self.after_store: ListenerRegistry[Any] = ListenerRegistry("after_store")
        self.key_generated: ListenerRegistry[Any] = ListenerRegistry("key_generated")
        self.key_revoked: ListenerRegistry[int] = ListenerRegistry("key_revoked")
        self.key_deleted: ListenerRegistry[int] = ListenerRegistry("key_deleted")
        self.invalid_key_attempt: ListenerRegistry[str] = ListenerRegistry(
            "invalid_key_attempt"
        )
        self.spike_detected: ListenerRegistry[Any] = ListenerRegistry("spike_detected")
        self.heartbeat_sent: ListenerRegistry[Any] = ListenerRegistry("heartbeat_sent")
        self.aggregator_allowlist: FilterRegistry[list[str]] = FilterRegistry(
            "aggregator_allowlist"
        )
        self.before_store: FilterRegistry[dict[str, Any]] = FilterRegistry(
            "before_store"
        )
