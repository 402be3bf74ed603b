"""Fire-and-forget execution of best-effort work."""

from concurrent.futures import Future, ThreadPoolExecutor, wait
from threading import Lock
from typing import Any, Callable

from dispute_desk.config import settings
from dispute_desk.errors import DependencyDegraded
from dispute_desk.utils.logging import AuditLogger, get_logger
from dispute_desk.utils.resilience import CallTimeout, call_with_timeout

logger = get_logger("background", settings.log_level)


class BackgroundRunner:
    """Runs notifications and risk assessments off the request path.

    Each task runs inside its own error boundary: failures and timeouts are
    logged and discarded, and the submitting operation never sees them.
    """

    def __init__(
        self,
        max_workers: int | None = None,
        audit_logger: AuditLogger | None = None,
    ):
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers or settings.background_workers,
            thread_name_prefix="dispute-bg",
        )
        self.audit_logger = audit_logger
        self._pending: set[Future] = set()
        self._lock = Lock()

    def submit(
        self,
        func: Callable[..., Any],
        *args: Any,
        name: str | None = None,
        timeout: float | None = None,
        dispute_id: str | None = None,
    ) -> Future:
        """Schedule ``func(*args)`` and return immediately."""
        task_name = name or getattr(func, "__name__", "task")
        future = self._executor.submit(self._run, func, args, task_name, timeout, dispute_id)
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._forget)
        return future

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    def _run(
        self,
        func: Callable[..., Any],
        args: tuple,
        name: str,
        timeout: float | None,
        dispute_id: str | None,
    ) -> None:
        try:
            call_with_timeout(func, timeout, *args)
        except CallTimeout as e:
            self._degraded(name, f"timed out: {e}", dispute_id)
        except DependencyDegraded as e:
            self._degraded(name, str(e), dispute_id)
        except Exception as e:
            logger.exception(f"Background task {name} failed")
            self._degraded(name, f"{type(e).__name__}: {e}", dispute_id)

    def _degraded(self, name: str, details: str, dispute_id: str | None) -> None:
        if self.audit_logger:
            self.audit_logger.log_degraded(name, details, dispute_id=dispute_id)
        else:
            logger.warning(f"{name} degraded: {details}")

    def drain(self, timeout: float | None = None) -> None:
        """Block until every submitted task, including ones submitted meanwhile, is done."""
        while True:
            with self._lock:
                pending = set(self._pending)
            if not pending:
                return
            done, not_done = wait(pending, timeout=timeout)
            if not_done:
                logger.warning(f"{len(not_done)} background task(s) still running")
                return

    def shutdown(self, wait_for_tasks: bool = True) -> None:
        self._executor.shutdown(wait=wait_for_tasks)
