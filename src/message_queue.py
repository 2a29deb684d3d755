import threading
from queue import Empty, Full, Queue
from typing import Generic, Iterator, Optional, TypeVar

T = TypeVar("T")


class RecordQueue(Generic[T]):
    """
    Bounded FIFO between one publisher thread and one consumer.

    Messages come out in exactly the order they were published. The publisher
    signals the end of the stream with ``shutdown()``, or ``fail()`` if the
    source broke; the consumer then sees the error re-raised from ``drain()``.
    """

    DEFAULT_TIMEOUT = 0.1

    def __init__(self, maxsize: int = 0):
        self._main_queue: Queue[T] = Queue(maxsize=maxsize)
        self._shutdown_event = threading.Event()
        self._error: Optional[BaseException] = None

    def publish_message(self, message: T) -> None:
        """
        Add message to the queue, blocking while it is full.
        Gives up silently once the queue has been shut down.
        """
        while not self._shutdown_event.is_set():
            try:
                self._main_queue.put(message, timeout=self.DEFAULT_TIMEOUT)
                return
            except Full:
                continue

    def consume_message(self) -> Optional[T]:
        """
        Get next message from the queue.
        Returns None if queue is empty after timeout.
        """
        try:
            return self._main_queue.get(timeout=self.DEFAULT_TIMEOUT)
        except Empty:
            return None

    def drain(self) -> Iterator[T]:
        """Yield messages in order until the publisher is done and the queue is empty."""
        while True:
            message = self.consume_message()
            if message is not None:
                yield message
                continue
            if self.is_shutdown() and self.is_empty():
                break
        if self._error is not None:
            raise self._error

    def is_empty(self) -> bool:
        """Check if queue is empty."""
        return self._main_queue.empty()

    def size(self) -> int:
        """Return approximate queue size."""
        return self._main_queue.qsize()

    def fail(self, error: BaseException) -> None:
        """Record a publisher failure and stop the stream."""
        self._error = error
        self.shutdown()

    def shutdown(self) -> None:
        """Signal no more messages will be published."""
        self._shutdown_event.set()

    def is_shutdown(self) -> bool:
        """Check if shutdown has been signaled."""
        return self._shutdown_event.is_set()
