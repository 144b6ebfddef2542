"""
Gateway Process Supervisor

Owns the lifecycle of the locally spawned gateway:

    Stopped -> Starting -> Running -> (unexpected exit) -> Restarting -> Running
                                                                      -> Failed

Combined stdout/stderr of the child is pumped into a bounded LogBuffer by
a reader thread, which also notices the exit and drives the restart loop.
In attach-only mode nothing is ever spawned: start() probes the gateway
port and reports Running (attached) or Failed.
"""

import logging
import subprocess
import threading
import time
from typing import Callable, Dict, List, Optional, Tuple

from core.errors import ProbeError, SpawnError
from utils.threads import ThreadManager

from .environment import build_gateway_environment, resolve_gateway_command
from .log_buffer import LogBuffer
from .probe import probe_gateway
from .settings import DebugSettings
from .status import GatewayState, GatewayStatus

logger = logging.getLogger(__name__)

StatusCallback = Callable[[GatewayStatus, 'GatewaySupervisor'], None]
LogCallback = Callable[[str], None]


def popen_spawner(argv: List[str], cwd, env: Dict[str, str]) -> subprocess.Popen:
    """Launch the gateway with stderr folded into stdout."""
    return subprocess.Popen(
        argv,
        cwd=str(cwd),
        env=env,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        text=True,
        errors='replace',
        bufsize=1,
    )


class _LaunchCancelled(Exception):
    """stop() won the race against an in-flight launch."""


class GatewaySupervisor:
    """
    Supervises exactly one gateway child process.

    start() and restart() are serialized: a call made while another one is
    in flight (or while the gateway is already active) is rejected and
    returns False. stop() waits for an in-flight start to finish, then
    tears the child down.
    """

    def __init__(
        self,
        settings: Optional[DebugSettings] = None,
        spawner: Callable = popen_spawner,
        probe: Callable[[int], bool] = probe_gateway,
        log_buffer: Optional[LogBuffer] = None,
    ):
        self.settings = settings or DebugSettings()
        self._spawner = spawner
        self._probe = probe
        self._log = log_buffer or LogBuffer(self.settings.log_max_chars)

        # State
        self._status = GatewayStatus.stopped()
        self._restart_count = 0
        self._consecutive_failures = 0
        self._process = None
        self._running_since: Optional[float] = None

        # Synchronization
        self._state_lock = threading.RLock()
        self._status_changed = threading.Condition(self._state_lock)
        self._transition_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._threads = ThreadManager(prefix="gateway")

        # Callbacks
        self._status_callbacks: List[StatusCallback] = []
        self._log_callbacks: List[LogCallback] = []

    # ========================================
    # Read-only state
    # ========================================

    @property
    def status(self) -> GatewayStatus:
        with self._state_lock:
            return self._status

    @property
    def restart_count(self) -> int:
        with self._state_lock:
            return self._restart_count

    @property
    def pid(self) -> Optional[int]:
        with self._state_lock:
            return self._process.pid if self._process is not None else None

    @property
    def log_buffer(self) -> LogBuffer:
        return self._log

    @property
    def log(self) -> str:
        return self._log.text()

    def get_status(self) -> dict:
        """Get current supervisor status as a plain dict"""
        with self._state_lock:
            status = self._status
            uptime = None
            if status.state == GatewayState.RUNNING and self._running_since is not None:
                uptime = time.monotonic() - self._running_since
            return {
                **status.to_dict(),
                'restart_count': self._restart_count,
                'consecutive_failures': self._consecutive_failures,
                'uptime_seconds': uptime,
                'attach_existing_only': self.settings.attach_existing_only,
                'log_chars': len(self._log),
            }

    def wait_for_state(self, *states: GatewayState, timeout: Optional[float] = None) -> bool:
        """Block until the status is in one of states; False on timeout."""
        with self._status_changed:
            return self._status_changed.wait_for(lambda: self._status.state in states, timeout=timeout)

    # ========================================
    # Callbacks
    # ========================================

    def subscribe(self, callback: StatusCallback) -> None:
        """Register callback(status, supervisor) for state transitions"""
        self._status_callbacks.append(callback)

    def subscribe_log(self, callback: LogCallback) -> None:
        """Register callback(chunk) for gateway output"""
        self._log_callbacks.append(callback)

    # ========================================
    # Log buffer
    # ========================================

    def append_log(self, chunk: str) -> None:
        self._log.append(chunk)
        for callback in self._log_callbacks:
            try:
                callback(chunk)
            except Exception as e:
                logger.error(f"Log callback error: {e}")

    def clear_log(self) -> None:
        self._log.clear()

    # ========================================
    # Lifecycle
    # ========================================

    def start(self) -> bool:
        """
        Start (or, in attach-only mode, attach to) the gateway.

        Returns:
            True if the gateway is running when the call returns
        """
        if not self._transition_lock.acquire(blocking=False):
            logger.warning("Gateway start already in progress, ignoring start request")
            return False

        try:
            with self._state_lock:
                if self._status.is_active:
                    logger.warning(f"Gateway already {self._status.state.value}, ignoring start request")
                    return False
            return self._start_locked()
        finally:
            self._transition_lock.release()

    def restart(self) -> bool:
        """Stop, then start. Always counts as a restart."""
        if not self._transition_lock.acquire(blocking=False):
            logger.warning("Gateway start already in progress, ignoring restart request")
            return False

        try:
            with self._state_lock:
                self._restart_count += 1
                count = self._restart_count
            logger.info(f"Restarting gateway (restart #{count})")
            self._stop_locked()
            return self._start_locked()
        finally:
            self._transition_lock.release()

    def stop(self) -> None:
        """Tear down the child (if any) and go to Stopped."""
        with self._transition_lock:
            self._stop_locked()

    # ========================================
    # Private Methods
    # ========================================

    def _start_locked(self) -> bool:
        # Threads left over from a run that ended in Failed
        self._threads.join_all(timeout=self.settings.stop_timeout)
        self._stop_event.clear()
        with self._state_lock:
            self._consecutive_failures = 0
        self._set_status(GatewayStatus.starting())

        if self.settings.attach_existing_only:
            return self._attach_existing()

        try:
            launch = self._prepare_launch()
        except SpawnError as e:
            logger.error(f"Cannot start gateway: {e}")
            self._set_status(GatewayStatus.failed(str(e)))
            return False

        try:
            self._spawn(*launch)
            return True
        except _LaunchCancelled:
            return False
        except SpawnError as e:
            logger.warning(f"Gateway failed to start: {e}")
            with self._state_lock:
                self._consecutive_failures += 1
            if self._enter_restarting(str(e)):
                self._threads.start_thread("restart", self._retry_loop, args=(str(e),))
            return False

    def _attach_existing(self) -> bool:
        port = self.settings.primary_port
        try:
            found = self._probe(port)
        except ProbeError as e:
            logger.warning(f"{e}; treating gateway as not running")
            found = False

        if found:
            logger.info(f"Attached to existing gateway on port {port}")
            self._set_status(GatewayStatus.running(attached=True))
            return True

        reason = f"attach-only mode: no gateway listening on port {port}"
        logger.warning(reason)
        self._set_status(GatewayStatus.failed(reason))
        return False

    def _prepare_launch(self) -> Tuple[List[str], object, Dict[str, str]]:
        """Resolve argv, cwd and env. Raises SpawnError for bad configuration."""
        root = self.settings.project_root_path
        env = build_gateway_environment(root)
        argv, cwd = resolve_gateway_command(
            root, env,
            binary=self.settings.gateway_binary,
            args=self.settings.gateway_args,
        )
        return argv, cwd, env

    def _spawn(self, argv: List[str], cwd, env: Dict[str, str]) -> None:
        """Launch one child and wait out the startup grace period."""
        logger.info(f"Launching gateway: {' '.join(argv)}")
        try:
            proc = self._spawner(argv, cwd, env)
        except (OSError, ValueError) as e:
            raise SpawnError(f"Failed to launch {argv[0]}: {e}") from e

        with self._state_lock:
            cancelled = self._stop_event.is_set()
            if not cancelled:
                self._process = proc
        if cancelled:
            self._terminate_process(proc)
            raise _LaunchCancelled()

        self._threads.start_thread(f"output-{proc.pid}", self._pump_output, args=(proc,))

        try:
            proc.wait(timeout=self.settings.startup_grace)
        except subprocess.TimeoutExpired:
            pass

        # Checking liveness and publishing Running under one lock means the
        # reader thread either sees Running (and handles the exit) or the
        # exit is seen here as an immediate failure.
        status = GatewayStatus.running(pid=proc.pid)
        with self._state_lock:
            if self._stop_event.is_set() or proc is not self._process:
                raise _LaunchCancelled()
            if proc.poll() is not None:
                self._process = None
                raise SpawnError(f"Gateway exited immediately with code {proc.returncode}",
                                 exit_code=proc.returncode)
            self._running_since = time.monotonic()
            changed = self._publish_locked(status)

        logger.info(f"Gateway running (pid {proc.pid})")
        if changed:
            self._notify_status(status)

    def _pump_output(self, proc) -> None:
        """Reader thread: copy output into the buffer, then handle the exit."""
        stream = getattr(proc, 'stdout', None)
        if stream is not None:
            try:
                for chunk in stream:
                    self.append_log(chunk)
            except (OSError, ValueError) as e:
                logger.debug(f"Gateway output stream closed: {e}")

        code = proc.wait()
        self._handle_exit(proc, code)

    def _handle_exit(self, proc, code: int) -> None:
        with self._state_lock:
            if (proc is not self._process
                    or self._stop_event.is_set()
                    or self._status.state != GatewayState.RUNNING):
                return

            uptime = time.monotonic() - (self._running_since or 0.0)
            self._process = None
            self._running_since = None
            if uptime < self.settings.stable_uptime:
                self._consecutive_failures += 1
            else:
                self._consecutive_failures = 0

        reason = f"gateway exited unexpectedly with code {code}"
        logger.warning(f"{reason} after {uptime:.1f}s")
        self._restart_cycle(reason)

    def _restart_cycle(self, reason: str) -> None:
        if self._enter_restarting(reason):
            self._retry_loop(reason)

    def _enter_restarting(self, reason: str) -> bool:
        """Count a restart and publish Restarting; False if the cap is hit or stop() was called."""
        if self._give_up_if_exhausted(self.settings.max_restart_attempts, reason):
            return False

        with self._state_lock:
            if self._stop_event.is_set():
                return False
            self._restart_count += 1
        self._set_status(GatewayStatus.restarting(reason), unless_stopping=True)
        return True

    def _retry_loop(self, last_error: str) -> None:
        """Retry until a child stays up, the cap is hit, or stop() is called."""
        cap = self.settings.max_restart_attempts

        while True:
            if self._stop_event.wait(self.settings.restart_delay):
                return

            try:
                launch = self._prepare_launch()
            except SpawnError as e:
                logger.error(f"Cannot restart gateway: {e}")
                self._set_status(GatewayStatus.failed(str(e)), unless_stopping=True)
                return

            try:
                self._spawn(*launch)
                return
            except _LaunchCancelled:
                return
            except SpawnError as e:
                last_error = str(e)
                with self._state_lock:
                    self._consecutive_failures += 1
                    failures = self._consecutive_failures
                logger.warning(f"Gateway restart attempt failed ({failures}/{cap}): {e}")

            if self._give_up_if_exhausted(cap, last_error):
                return

    def _give_up_if_exhausted(self, cap: int, last_error: str) -> bool:
        with self._state_lock:
            failures = self._consecutive_failures
        if failures < cap:
            return False

        reason = f"gave up after {failures} consecutive failures: {last_error}"
        if self._set_status(GatewayStatus.failed(reason), unless_stopping=True):
            logger.error(f"Gateway {reason}")
        return True

    def _stop_locked(self) -> None:
        self._stop_event.set()

        with self._state_lock:
            proc = self._process
            self._process = None
            self._running_since = None

        if proc is not None:
            logger.info(f"Stopping gateway (pid {proc.pid})")
            self._terminate_process(proc)

        self._threads.join_all(timeout=self.settings.stop_timeout)
        self._set_status(GatewayStatus.stopped())

    def _terminate_process(self, proc) -> None:
        """SIGTERM, wait, then SIGKILL if the child ignores it."""
        if proc.poll() is not None:
            return
        try:
            proc.terminate()
            proc.wait(timeout=self.settings.stop_timeout)
        except subprocess.TimeoutExpired:
            logger.warning(f"Gateway (pid {proc.pid}) ignored SIGTERM, killing")
            proc.kill()
            try:
                proc.wait(timeout=self.settings.stop_timeout)
            except subprocess.TimeoutExpired:
                logger.error(f"Gateway (pid {proc.pid}) did not exit after SIGKILL")
        except ProcessLookupError:
            pass

    def _set_status(self, status: GatewayStatus, unless_stopping: bool = False) -> bool:
        """Publish a transition; background threads pass unless_stopping so
        they can't overwrite the Stopped state a concurrent stop() sets."""
        with self._status_changed:
            if unless_stopping and self._stop_event.is_set():
                return False
            changed = self._publish_locked(status)
        if changed:
            self._notify_status(status)
        return changed

    def _publish_locked(self, status: GatewayStatus) -> bool:
        if status == self._status:
            return False
        self._status = status
        self._status_changed.notify_all()
        return True

    def _notify_status(self, status: GatewayStatus) -> None:
        for callback in self._status_callbacks:
            try:
                callback(status, self)
            except Exception as e:
                logger.error(f"Status callback error: {e}")
