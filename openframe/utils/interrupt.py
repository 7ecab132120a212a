"""SIGINT handling for long-running workflows."""

import signal
import threading
from contextlib import contextmanager
from typing import Callable, Iterator, Optional


@contextmanager
def interrupt_sets(event: threading.Event, on_interrupt: Optional[Callable[[], None]] = None) -> Iterator[None]:
    """Turn SIGINT into ``event.set()`` for the duration of the block.

    Only the main thread may install signal handlers; elsewhere this is a no-op.
    """
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    previous = signal.getsignal(signal.SIGINT)

    def _handler(signum, frame):
        event.set()
        if on_interrupt is not None:
            on_interrupt()

    signal.signal(signal.SIGINT, _handler)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)
