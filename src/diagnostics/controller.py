"""
Port Diagnostics Controller

Composes PortInspector and ProcessTerminator into the debug panel's
"check ports / kill listener" workflow.

Kill policy:
- An unexpected listener on a gateway port is killed straight away.
- An expected listener (our own gateway) is parked in a single pending
  slot until confirm_kill(pid) arrives for that exact pid. A newer request
  replaces the parked one; nothing is queued.

After a successful kill the ports are checked again. A failed kill is
reported through kill_status and never retried.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Iterable, List, Optional, Tuple

from gateway.settings import DebugSettings

from .port_inspector import PortInspector, PortListener, PortReport
from .terminator import ProcessTerminator, TerminationFailure, TerminationResult

logger = logging.getLogger(__name__)

ControllerCallback = Callable[[str, 'DiagnosticsController'], None]

EVENT_REPORTS = "reports"
EVENT_PENDING = "pending"
EVENT_KILL = "kill"


class DiagnosticsController:
    """Port check / kill orchestration with a confirmation gate."""

    def __init__(
        self,
        settings: Optional[DebugSettings] = None,
        inspector: Optional[PortInspector] = None,
        terminator: Optional[ProcessTerminator] = None,
        max_workers: int = 2,
    ):
        self.settings = settings or DebugSettings()
        self._inspector = inspector or PortInspector(self.settings)
        self._terminator = terminator or ProcessTerminator()
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="port-diag")

        self._lock = threading.Lock()
        self._reports: Tuple[PortReport, ...] = ()
        self._checked_ports: Optional[Tuple[int, ...]] = None
        self._check_future: Optional[Future] = None
        self._kill_status: Optional[str] = None

        self._pending: Optional[PortListener] = None
        self._decision = threading.Condition()
        self._decision_seq = 0

        self._callbacks: List[ControllerCallback] = []

    # ========================================
    # State
    # ========================================

    @property
    def reports(self) -> List[PortReport]:
        """Last published snapshot, ordered by port."""
        with self._lock:
            return list(self._reports)

    @property
    def pending_kill(self) -> Optional[PortListener]:
        with self._decision:
            return self._pending

    @property
    def kill_status(self) -> Optional[str]:
        with self._lock:
            return self._kill_status

    @property
    def check_in_flight(self) -> bool:
        with self._lock:
            return self._check_future is not None and not self._check_future.done()

    def subscribe(self, callback: ControllerCallback) -> None:
        """Register callback(event, controller) for reports/pending/kill events"""
        self._callbacks.append(callback)

    # ========================================
    # Port checks
    # ========================================

    def check_ports(self, ports: Optional[Iterable[int]] = None) -> List[PortReport]:
        """
        Inspect every port and publish the results as one snapshot.

        Args:
            ports: Ports to check (defaults to the configured gateway ports)

        Returns:
            Reports ordered by port
        """
        targets = sorted(set(ports if ports is not None else self.settings.gateway_ports))

        if len(targets) > 1:
            with ThreadPoolExecutor(max_workers=len(targets), thread_name_prefix="port-check") as pool:
                reports = list(pool.map(self._inspect, targets))
        else:
            reports = [self._inspect(port) for port in targets]

        with self._lock:
            self._reports = tuple(reports)
            self._checked_ports = tuple(targets)

        self._notify(EVENT_REPORTS)
        return reports

    def check_ports_async(self, ports: Optional[Iterable[int]] = None,
                          callback: Optional[Callable[[List[PortReport]], None]] = None) -> Future:
        """Run check_ports in the background; a check already in flight is reused."""
        with self._lock:
            if self._check_future is not None and not self._check_future.done():
                future = self._check_future
            else:
                self._kill_status = None
                future = self._executor.submit(self.check_ports, ports)
                self._check_future = future
        if callback:
            self._attach_callback(future, callback)
        return future

    def find_listener(self, pid: int) -> Optional[PortListener]:
        """Look up a listener in the last snapshot."""
        for report in self.reports:
            listener = report.find(pid)
            if listener is not None:
                return listener
        return None

    # ========================================
    # Kill workflow
    # ========================================

    def request_kill(self, listener: PortListener) -> Optional[TerminationResult]:
        """
        Ask to kill a listener.

        Returns:
            The TerminationResult for an unexpected listener, or None when
            the listener is expected and now waits for confirm_kill()
        """
        if not listener.expected:
            return self._kill(listener.pid)

        with self._decision:
            previous = self._pending
            self._pending = listener
            self._decision_seq += 1
            self._decision.notify_all()

        if previous is not None and previous.pid != listener.pid:
            logger.info(f"Pending kill of {previous.pid} superseded by {listener.pid}")
        logger.info(f"Kill of expected listener {listener.command} ({listener.pid}) needs confirmation")
        self._notify(EVENT_PENDING)
        return None

    def confirm_kill(self, pid: int) -> Optional[TerminationResult]:
        """
        Confirm the pending kill.

        Only a confirmation for the pending pid does anything; any other pid
        returns None and leaves the pending request in place.
        """
        with self._decision:
            if self._pending is None or self._pending.pid != pid:
                logger.warning(f"Ignoring confirmation for {pid}: not the pending kill")
                return None
            self._pending = None
            self._decision_seq += 1
            self._decision.notify_all()

        self._notify(EVENT_PENDING)
        return self._kill(pid)

    def cancel_kill(self) -> Optional[PortListener]:
        """Drop the pending request. Returns the listener that was pending."""
        with self._decision:
            cancelled = self._pending
            if cancelled is None:
                return None
            self._pending = None
            self._decision_seq += 1
            self._decision.notify_all()

        logger.info(f"Kill of {cancelled.pid} cancelled")
        self._notify(EVENT_PENDING)
        return cancelled

    def wait_for_decision(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the pending request is confirmed, cancelled or replaced.

        Returns:
            True if resolved (or nothing was pending), False on timeout
        """
        with self._decision:
            if self._pending is None:
                return True
            seq = self._decision_seq
            return self._decision.wait_for(lambda: self._decision_seq != seq, timeout=timeout)

    def request_kill_async(self, listener: PortListener,
                           callback: Optional[Callable[[Optional[TerminationResult]], None]] = None) -> Future:
        future = self._executor.submit(self.request_kill, listener)
        if callback:
            self._attach_callback(future, callback)
        return future

    def confirm_kill_async(self, pid: int,
                           callback: Optional[Callable[[Optional[TerminationResult]], None]] = None) -> Future:
        future = self._executor.submit(self.confirm_kill, pid)
        if callback:
            self._attach_callback(future, callback)
        return future

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    # ========================================
    # Private Methods
    # ========================================

    def _inspect(self, port: int) -> PortReport:
        try:
            return self._inspector.inspect(port)
        except Exception as e:
            logger.error(f"Port inspection for {port} failed: {e}")
            return PortReport(port=port, summary=f"Port {port}: check failed ({e}).", query_failed=True)

    def _kill(self, pid: int) -> TerminationResult:
        try:
            result = self._terminator.terminate(pid)
        except ValueError as e:
            result = TerminationResult(pid=pid, success=False, message=str(e),
                                       reason=TerminationFailure.UNKNOWN)

        if result:
            status = result.message if result.already_gone else f"Sent kill to {pid}."
        else:
            status = f"Kill {pid} failed: {result.message}"
        with self._lock:
            self._kill_status = status
        self._notify(EVENT_KILL)

        if result:
            with self._lock:
                checked = self._checked_ports
            self.check_ports(checked)
        return result

    def _attach_callback(self, future: Future, callback: Callable) -> None:
        def deliver(done: Future):
            try:
                callback(done.result())
            except Exception as e:
                logger.error(f"Diagnostics callback error: {e}")

        future.add_done_callback(deliver)

    def _notify(self, event: str) -> None:
        for callback in self._callbacks:
            try:
                callback(event, self)
            except Exception as e:
                logger.error(f"Diagnostics callback error: {e}")
