"""
Ownership-transferring buffers and the one-way channels that carry them
between the render loop and the inference worker.

Sending a message through a Channel moves every OwnedBuffer it holds: the
sender's handle is emptied and any later access raises BufferMovedError,
so the producer has to allocate a fresh buffer for its next frame.
"""

import threading
from collections import deque

from loguru import logger

from depth_relief.errors import BufferMovedError

DROP_OLDEST = "drop-oldest"
REJECT_NEW = "reject-new"
OVERLOAD_POLICIES = (DROP_OLDEST, REJECT_NEW)


class OwnedBuffer:
    """Single-owner wrapper around a numpy array."""

    __slots__ = ("_array",)

    def __init__(self, array):
        if array is None:
            raise ValueError("OwnedBuffer needs an array")
        self._array = array

    @property
    def moved(self):
        return self._array is None

    def _check(self):
        if self._array is None:
            raise BufferMovedError("buffer ownership was already transferred")

    def peek(self):
        """Borrow the array without giving up ownership."""
        self._check()
        return self._array

    def take(self):
        """Move the array out. The handle is empty afterwards."""
        self._check()
        array, self._array = self._array, None
        return array

    def transfer(self):
        """Hand the array to a new owner, invalidating this handle."""
        return OwnedBuffer(self.take())

    def __len__(self):
        self._check()
        return len(self._array)

    def __repr__(self):
        if self._array is None:
            return "OwnedBuffer(<moved>)"
        return f"OwnedBuffer(shape={self._array.shape}, dtype={self._array.dtype})"


class Channel:
    """
    FIFO message channel between two execution contexts.

    capacity == 0 means unbounded: the producer is never told to slow down
    and pending messages may pile up. With a positive capacity the overload
    policy decides what happens when the channel is full:

      * drop-oldest: discard the oldest pending droppable message.
      * reject-new:  refuse the incoming message (send returns False).

    Only messages whose ``droppable`` attribute is true (infer requests) count
    toward the capacity and are ever discarded or refused; control messages
    always get through.
    """

    def __init__(self, capacity=0, overload=DROP_OLDEST, name="channel"):
        if capacity < 0:
            raise ValueError("capacity must be >= 0")
        if overload not in OVERLOAD_POLICIES:
            raise ValueError(f"overload must be one of: {list(OVERLOAD_POLICIES)}")
        self.capacity = int(capacity)
        self.overload = overload
        self.name = name
        self.dropped = 0
        self.rejected = 0
        self._items = deque()
        self._closed = False
        self._cond = threading.Condition()

    def __len__(self):
        with self._cond:
            return len(self._items)

    def _pending_droppable(self):
        return sum(1 for pending in self._items if getattr(pending, "droppable", False))

    def _make_room(self):
        for idx, pending in enumerate(self._items):
            if getattr(pending, "droppable", False):
                del self._items[idx]
                self.dropped += 1
                return True
        return False

    def send(self, message):
        """
        Move ``message`` into the channel. Returns False when the message
        was refused (closed channel or reject-new overload).
        """
        with self._cond:
            if self._closed:
                logger.debug(f"[{self.name}] send on closed channel ignored")
                return False

            droppable = getattr(message, "droppable", False)
            if self.capacity and droppable and self._pending_droppable() >= self.capacity:
                if self.overload == REJECT_NEW or not self._make_room():
                    self.rejected += 1
                    return False

            # Ownership moves at the moment of sending, even if the
            # receiver has not picked the message up yet.
            if hasattr(message, "transfer"):
                message = message.transfer()
            self._items.append(message)
            self._cond.notify()
            return True

    def recv(self, timeout=None):
        """
        Block until a message is available. Returns None once the channel is
        closed and empty, or when ``timeout`` expires.
        """
        with self._cond:
            if not self._cond.wait_for(lambda: self._items or self._closed, timeout):
                return None
            if self._items:
                return self._items.popleft()
            return None

    def try_recv(self):
        with self._cond:
            if self._items:
                return self._items.popleft()
            return None

    def drain(self):
        """Take every pending message, in send order."""
        with self._cond:
            items = list(self._items)
            self._items.clear()
            return items

    def close(self):
        with self._cond:
            self._closed = True
            self._cond.notify_all()
