"""Best-effort registration with BlueZ's GATT and LE advertising managers.

Both ``RegisterApplication`` and ``RegisterAdvertisement`` make BlueZ call
straight back into our exported objects (``GetManagedObjects`` and
``GetAll``), so the calls cannot block the thread that dispatches those
methods.  They are issued with reply/error handlers.  When the caller can
take ownership of the GLib default main context it iterates the context
itself until the reply arrives; when a main loop already runs it on another
thread, the caller waits for that loop to dispatch the reply.

A failed call never raises here; it is recorded in a
:class:`RegistrationOutcome` and the two outcomes of one lifecycle step are
collected in a :class:`RegistrationReport`.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional

import dbus
from gi.repository import GLib

from bleperiph.core.errors import PeripheralError, map_dbus_error
from bleperiph.core.log import get_logger, print_and_log, LOG__DEBUG

__all__ = [
    "PendingCall",
    "RegistrationOutcome",
    "RegistrationReport",
    "call_async",
    "wait_for",
]

logger = get_logger(__name__)

# Seconds between attempts to take over the main context while another
# thread owns it.
_OWNER_POLL_INTERVAL = 0.1


@dataclass
class RegistrationOutcome:
    """Result of one (un)registration call against one BlueZ manager."""

    target: str
    succeeded: bool = False
    error: Optional[PeripheralError] = None

    def __str__(self) -> str:
        if self.succeeded:
            return f"{self.target}: ok"
        return f"{self.target}: {self.error}"


@dataclass
class RegistrationReport:
    action: str
    advertisement: RegistrationOutcome = field(
        default_factory=lambda: RegistrationOutcome("advertisement")
    )
    application: RegistrationOutcome = field(
        default_factory=lambda: RegistrationOutcome("application")
    )

    @property
    def ok(self) -> bool:
        return self.advertisement.succeeded and self.application.succeeded

    def failures(self) -> List[RegistrationOutcome]:
        return [o for o in (self.advertisement, self.application) if not o.succeeded]


class PendingCall:
    """Reply sink for one asynchronous D-Bus call."""

    def __init__(self, outcome: RegistrationOutcome, operation: str):
        self.outcome = outcome
        self.operation = operation
        self._finished = threading.Event()

    @property
    def done(self) -> bool:
        return self._finished.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until a reply or error was recorded, from any thread."""
        return self._finished.wait(timeout)

    def on_reply(self, *args) -> None:
        self.outcome.succeeded = True
        self.outcome.error = None
        self._finished.set()
        print_and_log(f"[+] {self.operation} succeeded", LOG__DEBUG)

    def on_error(self, exc) -> None:
        if isinstance(exc, dbus.exceptions.DBusException):
            error = map_dbus_error(exc, self.operation)
        else:
            error = PeripheralError(f"{self.operation}: {exc}")
        self.outcome.succeeded = False
        self.outcome.error = error
        self._finished.set()
        logger.warning(f"{self.operation} failed: {error}")


def call_async(
    method: Callable, args: Iterable, outcome: RegistrationOutcome, operation: str
) -> PendingCall:
    """Invoke proxy *method* with reply handlers bound to *outcome*.

    A call that fails before it is sent (e.g. the connection is already
    gone or the arguments do not marshal) is recorded the same way as an
    error reply.
    """
    pending = PendingCall(outcome, operation)
    try:
        method(*args, reply_handler=pending.on_reply, error_handler=pending.on_error)
    except Exception as e:
        pending.on_error(e)
    return pending


def wait_for(pending: PendingCall, context=None) -> RegistrationOutcome:
    """Block until *pending* got its reply.

    If the GLib main context is free it is acquired and iterated here.  If a
    main loop owns it on another thread, that loop dispatches the reply and
    this thread only waits for it.
    """
    context = context or GLib.MainContext.default()
    while not pending.done:
        if context.acquire():
            try:
                while not pending.done:
                    context.iteration(True)
            finally:
                context.release()
        else:
            pending.wait(_OWNER_POLL_INTERVAL)
    return pending.outcome
