"""
In-memory state for registrations between code issuance and token retrieval.

The code index, the device index and the expiry queue always change together
under one lock. Browser state tokens are bound to codes in the same store so a
removed registration takes its outstanding state tokens with it.

In production this would be replaced by a shared store (Redis, DynamoDB, etc.).
"""

import dataclasses
import logging
import threading
import time
from collections import deque
from typing import Callable

from ..models.registration import PendingRegistration, device_key
from ..utils.otel_metrics import metrics
from ..utils.security_mask import mask_sensitive_id
from .errors import AlreadyPendingError, InternalError, TooManyPendingError

logger = logging.getLogger(__name__)


class PendingRegistrationStore:
    """Pending device registrations keyed by registration code."""

    DEFAULT_TTL_SECONDS = 900
    DEFAULT_MAX_PENDING = 50000
    DEFAULT_SWEEP_INTERVAL_SECONDS = 5.0

    def __init__(
        self,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        max_pending: int = DEFAULT_MAX_PENDING,
        sweep_interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.time,
        start_sweeper: bool = True,
    ):
        self.ttl_seconds = ttl_seconds
        self.max_pending = max_pending
        self.sweep_interval_seconds = sweep_interval_seconds
        self._clock = clock
        self._start_sweeper = start_sweeper

        self._lock = threading.Lock()
        self._by_code: dict[str, PendingRegistration] = {}
        self._by_device: dict[str, str] = {}  # product:dsn -> reg code
        self._expiry_queue: deque[str] = deque()  # reg codes in creation order
        self._states: dict[str, str] = {}  # state token -> reg code
        self._code_states: dict[str, set[str]] = {}  # reg code -> state tokens

        self._sweeper: threading.Thread | None = None
        self._stop_event = threading.Event()

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_code)

    def create(self, reg_code: str, product: str, dsn: str, device_secret: str) -> PendingRegistration:
        """
        Register a pending device under `reg_code`.

        Raises:
            TooManyPendingError: If the store is at capacity
            AlreadyPendingError: If the device already has a pending registration
        """
        key = device_key(product, dsn)
        with self._lock:
            if len(self._by_code) >= self.max_pending:
                logger.warning(f"Request dropped as a result of max pending requests, product: {product}, dsn: {dsn}")
                raise TooManyPendingError()

            if key in self._by_device:
                logger.info(f"Registration already pending for {key}")
                raise AlreadyPendingError()

            if reg_code in self._by_code:
                logger.error(f"Registration code collision for {mask_sensitive_id(reg_code)}")
                raise InternalError("Failure generating code")

            registration = PendingRegistration(
                product=product,
                dsn=dsn,
                device_secret=device_secret,
                expires_at=self._clock() + self.ttl_seconds,
            )
            self._by_code[reg_code] = registration
            self._by_device[key] = reg_code
            self._expiry_queue.append(reg_code)

            self._ensure_sweeper()

        logger.debug(f"Pending registration created for {key}: {mask_sensitive_id(reg_code)}")
        return dataclasses.replace(registration)

    def lookup_by_code(self, reg_code: str) -> PendingRegistration | None:
        with self._lock:
            registration = self._by_code.get(reg_code)
            return dataclasses.replace(registration) if registration else None

    def lookup_by_device(self, product: str, dsn: str) -> tuple[str, PendingRegistration] | None:
        with self._lock:
            reg_code = self._by_device.get(device_key(product, dsn))
            if reg_code is None:
                return None
            return reg_code, dataclasses.replace(self._by_code[reg_code])

    def remove(self, reg_code: str) -> bool:
        """Remove a pending registration. Returns False if it was already gone."""
        with self._lock:
            return self._remove_locked(reg_code) is not None

    def _remove_locked(self, reg_code: str) -> PendingRegistration | None:
        registration = self._by_code.pop(reg_code, None)
        if registration is None:
            return None
        self._by_device.pop(registration.key, None)
        for state in self._code_states.pop(reg_code, ()):
            self._states.pop(state, None)
        # The expiry queue entry is dropped lazily by the next sweep
        return registration

    def record_poll(self, reg_code: str, now: float) -> float | None:
        """
        Stamp a device poll and return the previous poll time.

        Returns:
            Previous poll time, or None on the first poll

        Raises:
            KeyError: If the registration is no longer pending
        """
        with self._lock:
            registration = self._by_code[reg_code]
            previous = registration.last_poll_at
            registration.last_poll_at = now
            return previous

    def bind_state(self, state: str, reg_code: str) -> bool:
        """Bind a browser state token to a pending registration."""
        with self._lock:
            if reg_code not in self._by_code:
                return False
            self._states[state] = reg_code
            self._code_states.setdefault(reg_code, set()).add(state)
            return True

    def pop_state(self, state: str) -> str | None:
        """Resolve and delete a state token. A token resolves at most once."""
        with self._lock:
            reg_code = self._states.pop(state, None)
            if reg_code is not None:
                states = self._code_states.get(reg_code)
                if states is not None:
                    states.discard(state)
                    if not states:
                        del self._code_states[reg_code]
            return reg_code

    def promote(
        self,
        reg_code: str,
        now: float,
        on_promote: Callable[[PendingRegistration], None],
    ) -> PendingRegistration | None:
        """
        Finish a registration: run `on_promote` and remove the pending entry.

        Both happen under the store lock, so a concurrent sweep or poll sees
        either the pending entry or its promoted result, never neither.
        Returns None (and removes the entry if present) when the registration
        expired or was already consumed.
        """
        with self._lock:
            registration = self._by_code.get(reg_code)
            if registration is None:
                return None
            if registration.is_expired(now):
                self._remove_locked(reg_code)
                return None
            on_promote(dataclasses.replace(registration))
            return self._remove_locked(reg_code)

    def sweep_expired(self, now: float | None = None) -> int:
        """
        Expire registrations from the head of the expiry queue.

        Registrations share one TTL, so the queue is ordered by expiry and the
        sweep stops at the first live, unexpired entry.
        """
        if now is None:
            now = self._clock()

        expired_keys: list[str] = []
        with self._lock:
            while self._expiry_queue:
                reg_code = self._expiry_queue[0]
                registration = self._by_code.get(reg_code)
                if registration is not None:
                    if not registration.is_expired(now):
                        break
                    self._remove_locked(reg_code)
                    expired_keys.append(registration.key)
                # Consumed codes are just dropped from the queue
                self._expiry_queue.popleft()

        for key in expired_keys:
            logger.info(f"Expired pending registration for: {key}")

        expired = len(expired_keys)
        if expired > 0:
            logger.info(f"Expired {expired} pending registrations")
            metrics.record_registrations_expired(expired)
        return expired

    def _ensure_sweeper(self) -> None:
        # Called with the lock held
        if not self._start_sweeper or self._sweeper is not None:
            return
        self._sweeper = threading.Thread(
            target=self._sweep_loop,
            name="pending-registration-sweeper",
            daemon=True,
        )
        self._sweeper.start()
        logger.info(f"Started expiry sweeper (interval={self.sweep_interval_seconds}s)")

    def _sweep_loop(self) -> None:
        while not self._stop_event.wait(self.sweep_interval_seconds):
            try:
                self.sweep_expired()
            except Exception as e:
                logger.error(f"Expiry sweep failed: {e}", exc_info=True)

    def shutdown(self) -> None:
        """Stop the expiry sweeper if it was started."""
        self._stop_event.set()
        sweeper = self._sweeper
        if sweeper is not None and sweeper is not threading.current_thread():
            sweeper.join(timeout=self.sweep_interval_seconds + 1)
