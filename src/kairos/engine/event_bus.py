"""
Channel-keyed publish/subscribe bus.

Used by every TimeFrame for its own lifecycle events and by the Scheduler
to relay them. Delivery order is subscription order. Each publish delivers
to a snapshot of the subscriber list, so subscribers may subscribe,
unsubscribe or publish from inside a callback.

A failing subscriber is logged and skipped; the publisher never sees the
exception.
"""

import logging
import threading
import types
from collections import namedtuple
from typing import Any, Callable, Dict, List, Optional

Subscription = namedtuple('Subscription', ['channel', 'callback'])


class EventBus:
    """Subscriber registry keyed by channel name."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        """
        Args:
            logger: Diagnostic sink for subscriber failures
        """
        self.logger = logger if logger is not None else logging.getLogger(__name__)
        self._channels: Dict[str, List[Callable]] = {}
        self._lock = threading.Lock()

    def subscribe(self, channel: str, fn: Callable) -> Subscription:
        """
        Register fn on channel.

        Returns:
            Handle to pass to unsubscribe()
        """
        if not callable(fn):
            raise TypeError(f"Subscriber for {channel!r} is not callable")
        with self._lock:
            self._channels.setdefault(channel, []).append(fn)
        return Subscription(channel, fn)

    def unsubscribe(self, handle: Subscription):
        """Remove every registration of handle.callback on handle.channel."""
        channel, fn = handle
        with self._lock:
            subscribers = self._channels.get(channel)
            if not subscribers:
                return
            remaining = [s for s in subscribers if s is not fn]
            if remaining:
                self._channels[channel] = remaining
            else:
                del self._channels[channel]

    def publish(self, channel: str, args: Any = (), scope: Any = None) -> int:
        """
        Deliver args to every current subscriber of channel.

        Args:
            channel: Channel name
            args: A list/tuple is spread into positional arguments, anything
                else (None included) is passed as the only argument. The
                default empty tuple calls subscribers with no arguments
            scope: If given, plain-function subscribers are bound to it and
                receive it as their first argument

        Returns:
            Number of subscribers that completed without raising
        """
        with self._lock:
            subscribers = tuple(self._channels.get(channel, ()))
        if not subscribers:
            return 0

        if not isinstance(args, (list, tuple)):
            args = (args,)

        delivered = 0
        for fn in subscribers:
            if scope is not None and isinstance(fn, types.FunctionType):
                fn = types.MethodType(fn, scope)
            try:
                fn(*args)
                delivered += 1
            except Exception as e:
                self.logger.exception(f"Subscriber on {channel!r} failed: {e}")
        return delivered

    def has_subscribers(self, channel: str) -> bool:
        with self._lock:
            return channel in self._channels

    def channels(self) -> List[str]:
        """Channels that currently have at least one subscriber."""
        with self._lock:
            return list(self._channels)
