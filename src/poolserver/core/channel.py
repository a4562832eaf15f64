"""
=============================================================================
DISPATCH CHANNEL
=============================================================================

The channel is the ONLY piece of shared mutable state between the thread
that accepts connections and the worker threads that process them.

    ┌──────────────┐                                   ┌──────────────┐
    │  submitter   │──┐                           ┌──►│   Worker 0   │
    └──────────────┘  │   ┌───────────────────┐   │   └──────────────┘
                      ├──►│ [u1] [u2] [u3] ...│───┤
    ┌──────────────┐  │   └───────────────────┘   │   ┌──────────────┐
    │  submitter   │──┘        Channel            └──►│   Worker 1   │
    └──────────────┘   (deque + one lock)             └──────────────┘

Guarantees:
- Every unit sent is delivered to exactly ONE receiver.
- Units from a single sender come out in the order they went in.
- Nothing is promised about which worker gets which unit.

=============================================================================
WHY NOT A PLAIN queue.Queue?
=============================================================================

queue.Queue has no notion of "closed". The classic workaround is a poison
pill per worker, but that cannot express two things we need:

    1. A sender blocked on a full queue must WAKE UP and fail when the
       channel is closed, not sit there forever.
    2. Closing must be able to DISCARD pending units and hand them back.

So we keep the same ingredients (a deque guarded by a lock, with
condition variables to sleep on) and add the closed flag ourselves.

=============================================================================
CLOSE SEMANTICS
=============================================================================

    close(drain=True)      pending units stay deliverable;
                           receive() returns None once the queue is empty

    close(drain=False)     pending units are removed and returned;
                           receive() returns None immediately

In both cases every blocked receive() and send() is woken up.
Closing is one-way and idempotent.

=============================================================================
"""

import threading
import time
import queue
from collections import deque
from typing import Any, Deque, List, Optional

from .errors import ChannelClosed


class Channel:
    """
    Multi-producer, multi-consumer channel with a closed state.

    Usage:
        channel = Channel()
        channel.send(unit)          # any thread
        item = channel.receive()    # worker thread; None means "closed"
        channel.close()
    """

    def __init__(self, maxsize: int = 0):
        """
        Args:
            maxsize: Maximum number of pending items. 0 means unbounded,
                     in which case send() never blocks.
        """
        if maxsize < 0:
            raise ValueError(f"maxsize must be >= 0, got {maxsize}")

        self.maxsize = maxsize
        self._items: Deque[Any] = deque()
        self._closed = False

        # One lock, two conditions on it: receivers wait for items,
        # senders wait for free space.
        self._mutex = threading.Lock()
        self._not_empty = threading.Condition(self._mutex)
        self._not_full = threading.Condition(self._mutex)

    @property
    def closed(self) -> bool:
        """True once close() has been called."""
        with self._mutex:
            return self._closed

    def qsize(self) -> int:
        """Number of items waiting to be received."""
        with self._mutex:
            return len(self._items)

    def __len__(self) -> int:
        return self.qsize()

    def _is_full(self) -> bool:
        return 0 < self.maxsize <= len(self._items)

    def send(self, item: Any, block: bool = True, timeout: Optional[float] = None) -> None:
        """
        Enqueue an item for delivery to exactly one receiver.

        Args:
            item: Anything except None (None is the closed-indicator).
            block: Wait for space if the channel is bounded and full.
            timeout: Maximum seconds to wait for space.

        Raises:
            TypeError: If item is None.
            ChannelClosed: If the channel is (or becomes) closed.
            queue.Full: If there is no space and we may not wait any longer.
        """
        if item is None:
            raise TypeError("None cannot be sent on a channel")

        with self._not_full:
            if self._closed:
                raise ChannelClosed("send on closed channel")

            if self._is_full():
                if not block:
                    raise queue.Full

                deadline = None if timeout is None else time.monotonic() + timeout
                while self._is_full() and not self._closed:
                    if deadline is None:
                        self._not_full.wait()
                    else:
                        remaining = deadline - time.monotonic()
                        if remaining <= 0:
                            raise queue.Full
                        self._not_full.wait(remaining)

                # Woken up by close() rather than by free space
                if self._closed:
                    raise ChannelClosed("channel closed while waiting to send")

            self._items.append(item)
            self._not_empty.notify()

    def receive(self, timeout: Optional[float] = None) -> Optional[Any]:
        """
        Take the next item, blocking while the channel is open and empty.

        Args:
            timeout: Maximum seconds to wait. None waits forever.

        Returns:
            The next item, or None if the channel is closed and has
            nothing left to deliver.

        Raises:
            queue.Empty: If the timeout expires while the channel is open.
        """
        with self._not_empty:
            deadline = None if timeout is None else time.monotonic() + timeout

            while not self._items:
                if self._closed:
                    return None
                if deadline is None:
                    self._not_empty.wait()
                else:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        raise queue.Empty
                    self._not_empty.wait(remaining)

            item = self._items.popleft()
            self._not_full.notify()
            return item

    def close(self, drain: bool = True) -> List[Any]:
        """
        Close the channel and wake everyone waiting on it.

        Args:
            drain: Keep already-enqueued items deliverable (True) or
                   remove them (False).

        Returns:
            The discarded items. Always empty when drain=True or when the
            channel was already closed.
        """
        with self._mutex:
            if self._closed:
                return []

            self._closed = True
            discarded: List[Any] = []
            if not drain:
                discarded = list(self._items)
                self._items.clear()

            self._not_empty.notify_all()
            self._not_full.notify_all()
            return discarded
