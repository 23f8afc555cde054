# ed_core/common/events.py
import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List

Handler = Callable[[Dict[str, Any]], None]

logger = logging.getLogger(__name__)

_registry: Dict[str, List[Handler]] = defaultdict(list)


def subscribe(event_name: str):
    """
    Decorator to register an event handler.
    Usage:
        @subscribe("encounter.updated")
        def handler(payload): ...
    """
    def _decorator(fn: Handler) -> Handler:
        _registry[event_name].append(fn)
        return fn
    return _decorator


def unsubscribe(event_name: str, fn: Handler) -> None:
    handlers = _registry.get(event_name, [])
    if fn in handlers:
        handlers.remove(fn)


def publish(event_name: str, payload: Dict[str, Any]) -> int:
    """
    Publish an event to in-process subscribers.
    Keep payloads ID-based to avoid cross-app imports.
    Handler errors propagate so the caller can leave the event unprocessed.
    Returns the number of handlers invoked.
    """
    handlers = list(_registry.get(event_name, []))
    for handler in handlers:
        handler(payload)
    logger.debug(f"Published {event_name} to {len(handlers)} handler(s)")
    return len(handlers)
