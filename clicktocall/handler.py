"""Scheme handler: one OS-delivered telephone link in, one ``CallOutcome`` out.

Each call to ``SchemeHandler.handle`` runs a fresh ``Invocation`` through

    start -> normalizing -> loading_settings -> building -> dispatching -> done

and every failure jumps straight to ``done``.  The three collaborators are
injected so the whole pipeline runs against fakes in tests:

    * a settings source (``SettingsStore``) read once per invocation,
    * a dispatcher (``CallDispatcher``), the only component doing I/O,
    * a reporter (``Notifier``) receiving the final outcome.

Typical usage::

    handler = SchemeHandler(SettingsStore(), CallDispatcher(), Notifier())
    outcome = handler.handle("tel:+1-555-123-4567")
"""

import dataclasses
from enum import StrEnum, auto
from typing import Protocol, runtime_checkable

from loguru import logger

from clicktocall.appconfig import AppConfig
from clicktocall.errors import IncompleteSettings, InvalidNumber, NotConfigured
from clicktocall.number import normalize
from clicktocall.outcome import CallOutcome, OutcomeKind
from clicktocall.request_builder import CallRequest, build
from clicktocall.settings import Settings


@runtime_checkable
class SettingsSource(Protocol):
    def load(self) -> Settings: ...


@runtime_checkable
class Dispatcher(Protocol):
    def dispatch(self, request: CallRequest, timeout: float, number: str | None = None) -> CallOutcome: ...


@runtime_checkable
class OutcomeReporter(Protocol):
    def report_outcome(self, outcome: CallOutcome) -> None: ...


class HandlerState(StrEnum):
    START = auto()
    NORMALIZING = auto()
    LOADING_SETTINGS = auto()
    BUILDING = auto()
    DISPATCHING = auto()
    DONE = auto()


@dataclasses.dataclass
class Invocation:
    """Per-link record; nothing in here survives into the next link.

    Attributes:
        raw_argument: The link exactly as delivered by the OS.
        state: Current pipeline state.
        history: States visited, in order.
        number: Normalized number once known.
        outcome: Final outcome once ``state`` is ``DONE``.
    """

    raw_argument: str
    state: HandlerState = HandlerState.START
    history: list[HandlerState] = dataclasses.field(default_factory=lambda: [HandlerState.START])
    number: str = ""
    outcome: CallOutcome | None = None

    def advance(self, state: HandlerState) -> None:
        self.state = state
        self.history.append(state)


class SchemeHandler:
    """Orchestrates normalize -> load settings -> build -> dispatch -> report.

    Args:
        settings_source: Provides the settings snapshot (``load()``).
        dispatcher: Sends the request (``dispatch(request, timeout)``).
        reporter: Receives the outcome; optional.
        config: Deployment config (API template, timeout); defaults apply
            when omitted.
    """

    def __init__(
        self,
        settings_source: SettingsSource,
        dispatcher: Dispatcher,
        reporter: OutcomeReporter | None = None,
        config: AppConfig | None = None,
    ) -> None:
        self.settings_source = settings_source
        self.dispatcher = dispatcher
        self.reporter = reporter
        self.config = config if config is not None else AppConfig()
        self._log = logger.bind(classname="SchemeHandler")

    def handle(self, raw_argument: str) -> CallOutcome:
        """Run the full pipeline for one link and report the outcome.

        Args:
            raw_argument: Link as delivered by the OS, e.g. ``"tel:+15551234567"``.

        Returns:
            The outcome; local failures never touch the network.
        """
        outcome = self.run(raw_argument).outcome
        assert outcome is not None
        return outcome

    def run(self, raw_argument: str) -> Invocation:
        """Like ``handle`` but returns the finished ``Invocation`` with its state history."""
        inv = Invocation(raw_argument=raw_argument)
        self._log.info(f"Received link: {raw_argument!r}")

        outcome = self._pipeline(inv)

        inv.outcome = outcome
        inv.advance(HandlerState.DONE)
        self._log.debug(f"Invocation finished: {' -> '.join(inv.history)}")

        if self.reporter is not None:
            self.reporter.report_outcome(outcome)
        return inv

    def _pipeline(self, inv: Invocation) -> CallOutcome:
        inv.advance(HandlerState.NORMALIZING)
        try:
            inv.number = normalize(inv.raw_argument)
        except InvalidNumber as exc:
            return CallOutcome.local_failure(OutcomeKind.INVALID_NUMBER, str(exc))
        self._log.info(f"Normalized number: {inv.number}")

        inv.advance(HandlerState.LOADING_SETTINGS)
        try:
            settings = self.settings_source.load()
        except NotConfigured as exc:
            return CallOutcome.local_failure(OutcomeKind.NOT_CONFIGURED, str(exc), number=inv.number)

        inv.advance(HandlerState.BUILDING)
        try:
            request = build(settings, inv.number, self.config.api)
        except IncompleteSettings as exc:
            return CallOutcome.local_failure(
                OutcomeKind.INCOMPLETE_SETTINGS, f"missing {', '.join(exc.missing)}", number=inv.number
            )

        inv.advance(HandlerState.DISPATCHING)
        return self.dispatcher.dispatch(request, self.config.timeout_seconds, number=inv.number)
