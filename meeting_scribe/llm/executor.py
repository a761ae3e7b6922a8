"""
Fault-tolerant execution of remote language-model calls.

ResilientExecutor invokes an opaque remote operation with a credential from
the CredentialPool and a model identifier. Quota and invalid-key failures
rotate to the next credential; once every credential has failed for the
current model, the model is demoted to its cheaper fallback (if one is
configured) and the pool is cycled again. Any other failure propagates at
once.

Rotation and demotion are sticky: they live in an ExecutorState shared by
reference, so later calls start from the rotated credential and keep using
the fallback model until a fresh state is created. Demoted models are never
promoted back automatically.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from ..errors import ExhaustedError, FatalRemoteError, MeetingScribeError, OperationCancelled, classify_error
from .credentials import CredentialPool

logger = logging.getLogger(__name__)

DEFAULT_RETRY_DELAY = 0.5

# (credential, effective_model, payload) -> result
RemoteOperation = Callable[[str, str, Any], Any]


@dataclass(frozen=True)
class StatusSnapshot:
    """Execution state published to subscribers before each attempt."""

    credential_index: int
    pool_size: int
    effective_model: str
    is_fallback: bool


StatusListener = Callable[[StatusSnapshot], None]


class ExecutorState:
    """
    Mutable state shared by every call of an executor.

    Holds the credential pool (and therefore its cursor), the configured
    fallback mapping and the demotions triggered so far. All access goes
    through ``lock``.
    """

    def __init__(self, pool: CredentialPool, fallback_models: Optional[Dict[str, str]] = None):
        self.pool = pool
        self.fallback_models = dict(fallback_models or {})
        self.demotions: Dict[str, str] = {}
        self.lock = threading.RLock()

    def effective_model(self, requested: str) -> str:
        """Follow recorded demotions from ``requested`` to the model currently in use."""
        model = requested
        seen = {model}
        while model in self.demotions:
            model = self.demotions[model]
            if model in seen:
                break
            seen.add(model)
        return model

    def demote(self, model: str) -> Optional[str]:
        """Record and return the fallback for ``model``, or None if it has none."""
        fallback = self.fallback_models.get(model)
        if fallback:
            self.demotions[model] = fallback
        return fallback


class ResilientExecutor:
    """Runs remote operations with credential rotation and model fallback."""

    def __init__(
        self,
        state: ExecutorState,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the executor.

        Args:
            state: Shared cursor/fallback state
            retry_delay: Seconds to wait after each rotation before retrying
            sleep: Blocking sleep function (injectable for tests)
        """
        self.state = state
        self.retry_delay = retry_delay
        self._sleep = sleep
        self._listeners: List[StatusListener] = []
        self._listeners_lock = threading.Lock()
        self.last_status: Optional[StatusSnapshot] = None

    @property
    def pool(self) -> CredentialPool:
        return self.state.pool

    @property
    def max_attempts(self) -> int:
        return 2 * self.pool.size() + 1

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        """
        Register a listener for StatusSnapshot notifications.

        Returns:
            A function that unsubscribes the listener
        """
        with self._listeners_lock:
            self._listeners.append(listener)
        return lambda: self.unsubscribe(listener)

    def unsubscribe(self, listener: StatusListener) -> None:
        with self._listeners_lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def _publish(self, snapshot: StatusSnapshot) -> None:
        self.last_status = snapshot
        with self._listeners_lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(snapshot)
            except Exception as e:
                logger.error(f"Status listener {listener!r} failed: {e}")

    @staticmethod
    def _check_cancelled(cancel_check: Optional[Callable[[], bool]], attempt: int) -> None:
        if cancel_check is not None and cancel_check():
            logger.info(f"Remote call cancelled before attempt {attempt}")
            raise OperationCancelled("Remote call cancelled")

    def execute(
        self,
        operation: RemoteOperation,
        model: str,
        payload: Any = None,
        cancel_check: Optional[Callable[[], bool]] = None,
    ) -> Any:
        """
        Invoke ``operation`` until it succeeds or every option is exhausted.

        Args:
            operation: Callable taking (credential, effective_model, payload)
            model: Requested model identifier
            payload: Opaque request data passed through to ``operation``
            cancel_check: Polled before every attempt and before every retry
                delay; returning True stops the call

        Returns:
            Whatever ``operation`` returns

        Raises:
            FatalRemoteError: On the first non-transient failure
            ExhaustedError: When all credentials (and fallback models) failed
                or the attempt cap of ``2 * pool size + 1`` was reached
            OperationCancelled: When ``cancel_check`` returned True
        """
        state = self.state
        pool = state.pool
        with state.lock:
            effective = state.effective_model(model)
        is_fallback = effective != model
        max_attempts = self.max_attempts
        failures_this_cycle = 0
        last_error: Optional[BaseException] = None

        for attempt in range(1, max_attempts + 1):
            self._check_cancelled(cancel_check, attempt)
            with state.lock:
                index = pool.index
                credential = pool.current()
                size = pool.size()
            self._publish(StatusSnapshot(index, size, effective, is_fallback))

            try:
                return operation(credential, effective, payload)
            except Exception as e:
                category = classify_error(e)
                if not category.is_transient:
                    logger.error(f"Remote call failed with non-retryable error (model {effective}): {e}")
                    if isinstance(e, MeetingScribeError):
                        raise
                    raise FatalRemoteError(str(e)) from e
                last_error = e

            with state.lock:
                # Another worker may already have moved the cursor past this credential
                new_index = pool.rotate() if pool.index == index else pool.index
                failures_this_cycle += 1
                logger.warning(
                    f"Attempt {attempt}/{max_attempts} failed ({category.value}) on credential #{index}; "
                    f"switching to credential #{new_index}"
                )

                if failures_this_cycle >= size:
                    failures_this_cycle = 0
                    fallback = state.demote(effective)
                    if fallback:
                        logger.warning(f"All {size} credential(s) failed for {effective}; falling back to {fallback}")
                        effective = fallback
                        is_fallback = True
                    elif not is_fallback:
                        logger.error(f"All {size} credential(s) failed for {effective} and no fallback model exists")
                        raise ExhaustedError(
                            f"All {size} API credential(s) exhausted for model {effective}: {last_error}",
                            last_error=last_error,
                            attempts=attempt,
                        )

            if attempt < max_attempts:
                self._check_cancelled(cancel_check, attempt + 1)
                self._sleep(self.retry_delay)

        logger.error(f"Giving up after {max_attempts} attempts (model {effective})")
        raise ExhaustedError(
            f"Request failed after {max_attempts} attempts across {pool.size()} API credential(s): {last_error}",
            last_error=last_error,
            attempts=max_attempts,
        )
