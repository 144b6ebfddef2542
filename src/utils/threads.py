"""Managed threads for the gateway supervisor's output pumps and watchers"""

import threading
import logging
from typing import Callable, Dict, List

logger = logging.getLogger(__name__)


class ThreadManager:
    """Tracks the background threads a supervisor starts so they can be joined on stop.

    Short fire-and-forget work (port checks, kill requests) goes through a
    ThreadPoolExecutor instead. This manager is for threads bound to a
    resource's lifetime, like the reader attached to a child's stdout.

    Usage:
        manager = ThreadManager(prefix="gateway")
        manager.start_thread("output-4242", pump, args=(proc,))

        # On stop
        manager.join_all(timeout=5)
    """

    def __init__(self, prefix: str = "", daemon: bool = True):
        self._prefix = prefix
        self._daemon = daemon
        self._threads: Dict[str, threading.Thread] = {}
        self._lock = threading.Lock()

    def start_thread(
        self,
        name: str,
        target: Callable,
        args: tuple = (),
        kwargs: dict = None,
    ) -> threading.Thread:
        """Start a tracked thread.

        Names must be unique among live threads; finished threads are
        pruned before the check.

        Raises:
            ValueError: if a live thread already uses this name
        """
        full_name = f"{self._prefix}-{name}" if self._prefix else name

        with self._lock:
            self._prune_locked()
            if full_name in self._threads:
                raise ValueError(f"Thread {full_name} is already running")

            thread = threading.Thread(
                target=target,
                args=args,
                kwargs=kwargs or {},
                name=full_name,
                daemon=self._daemon,
            )
            self._threads[full_name] = thread
            thread.start()

        logger.debug(f"Started managed thread: {full_name}")
        return thread

    def join_all(self, timeout: float = 5.0, exclude_current: bool = True) -> int:
        """Join every tracked thread.

        The calling thread is skipped when it is itself managed (a watcher
        that ends up stopping the supervisor must not join itself).

        Returns:
            Number of threads still alive after the timeout
        """
        current = threading.current_thread()
        with self._lock:
            threads = list(self._threads.values())

        still_running = 0
        for thread in threads:
            if exclude_current and thread is current:
                continue
            thread.join(timeout=timeout)
            if thread.is_alive():
                logger.warning(f"Thread {thread.name} still running after {timeout}s")
                still_running += 1

        with self._lock:
            self._prune_locked()

        return still_running

    @property
    def running_threads(self) -> List[str]:
        """Get names of currently running threads."""
        with self._lock:
            return [name for name, t in self._threads.items() if t.is_alive()]

    def _prune_locked(self) -> None:
        for name in [n for n, t in self._threads.items() if not t.is_alive() and t.ident is not None]:
            del self._threads[name]
