"""Sign-in session state and the inactivity logout timer.

``Session`` is an immutable value passed explicitly to whatever needs the
signed-in user; nothing reads auth state from a global.  Sign-in / sign-out
go through an ``AuthProvider`` capability (``StoreClient`` implements it),
so the session logic can be exercised with a fake provider.

Typical usage::

    from alpha_ledger.session import SessionManager
    manager = SessionManager(auth=store, idle_timeout_seconds=1800)
    session = manager.sign_in("me@example.com", "secret")
    manager.touch()      # on every qualifying user interaction
    manager.sign_out()   # or let the idle timer do it

Exactly one idle timer is live per manager: ``IdleTimer.reset()`` always
cancels the previous timer before arming a new one.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Session:
    """An authenticated (or anonymous) store session.

    Attributes:
        user_id:      Store user id, or None when anonymous.
        email:        Sign-in email, or None when anonymous.
        access_token: Bearer token for row-level-security queries.
    """

    user_id: Optional[str] = None
    email: Optional[str] = None
    access_token: Optional[str] = None

    @classmethod
    def anonymous(cls) -> "Session":
        return cls()

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_id and self.access_token)


class AuthProvider(Protocol):
    """Capability interface for sign-in and sign-out."""

    def sign_in(self, email: str, password: str) -> Session: ...

    def sign_up(self, email: str, password: str) -> Session: ...

    def sign_out(self, session: Session) -> None: ...


class IdleTimer:
    """Single-shot inactivity timer with reset.

    Parameters
    ----------
    timeout_seconds:
        Delay before ``on_expire`` fires.
    on_expire:
        Callback run on the timer thread when the delay elapses.
    timer_factory:
        Callable with the ``threading.Timer(interval, function)`` signature.
        Injected in tests.
    """

    def __init__(
        self,
        timeout_seconds: float,
        on_expire: Callable[[], None],
        timer_factory: Callable[[float, Callable[[], None]], threading.Timer] = threading.Timer,
    ) -> None:
        if timeout_seconds <= 0:
            raise ValueError(f"timeout_seconds must be positive, got {timeout_seconds}.")
        self.timeout_seconds = timeout_seconds
        self._on_expire = on_expire
        self._timer_factory = timer_factory
        self._timer: Optional[threading.Timer] = None
        self._generation = 0
        self._lock = threading.Lock()

    @property
    def is_armed(self) -> bool:
        return self._timer is not None

    def reset(self) -> None:
        """Cancel the live timer (if any) and arm a fresh one."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._generation += 1
            generation = self._generation
            timer = self._timer_factory(self.timeout_seconds, lambda: self._fire(generation))
            timer.daemon = True
            self._timer = timer
            timer.start()

    def cancel(self) -> None:
        with self._lock:
            self._generation += 1
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def _fire(self, generation: int) -> None:
        # A timer already running when reset() or cancel() ran is stale.
        with self._lock:
            if generation != self._generation:
                return
            self._timer = None
        self._on_expire()


class SessionManager:
    """Holds the current ``Session`` and signs out after inactivity."""

    def __init__(
        self,
        auth: AuthProvider,
        idle_timeout_seconds: float,
        on_signed_out: Optional[Callable[[], None]] = None,
        timer_factory: Callable[[float, Callable[[], None]], threading.Timer] = threading.Timer,
    ) -> None:
        self._auth = auth
        self._on_signed_out = on_signed_out
        self.session = Session.anonymous()
        self._timer = IdleTimer(idle_timeout_seconds, self._expire, timer_factory)

    def sign_in(self, email: str, password: str) -> Session:
        """Sign in and arm the idle timer.  Auth errors propagate."""
        self.session = self._auth.sign_in(email, password)
        log.info("Signed in as %s", self.session.email)
        self._timer.reset()
        return self.session

    def sign_up(self, email: str, password: str) -> Session:
        """Register; arms the idle timer only if the store returned a live session."""
        session = self._auth.sign_up(email, password)
        if session.is_authenticated:
            self.session = session
            self._timer.reset()
        return session

    def touch(self) -> None:
        """Record user activity; restarts the idle countdown."""
        if self.session.is_authenticated:
            self._timer.reset()

    def sign_out(self) -> None:
        """Clear the local session, then revoke it remotely.

        The local session is cleared even if the remote call raises.
        """
        self._timer.cancel()
        previous, self.session = self.session, Session.anonymous()
        try:
            if previous.is_authenticated:
                self._auth.sign_out(previous)
                log.info("Signed out %s", previous.email)
        finally:
            if self._on_signed_out is not None:
                self._on_signed_out()

    def _expire(self) -> None:
        log.info("Idle timeout reached; terminating session")
        try:
            self.sign_out()
        except Exception:
            log.exception("Remote sign-out failed after idle timeout")
