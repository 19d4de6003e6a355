"""Tests for the scheme handler pipeline, including the end-to-end scenarios."""

import threading
from pathlib import Path
from unittest.mock import MagicMock
from urllib.parse import parse_qs, urlsplit

import pytest
import requests

from clicktocall.appconfig import AppConfig
from clicktocall.dispatcher import CallDispatcher
from clicktocall.errors import NotConfigured
from clicktocall.handler import Dispatcher, HandlerState, OutcomeReporter, SchemeHandler, SettingsSource
from clicktocall.outcome import CallOutcome, OutcomeKind
from clicktocall.settings import Settings, SettingsStore

CONFIGURED = Settings(domain="pbx.example.com", extension="101", key="abc123", auto_answer=False)


class FakeStore:
    def __init__(self, settings: Settings | None) -> None:
        self.settings = settings
        self.loads = 0

    def load(self) -> Settings:
        self.loads += 1
        if self.settings is None:
            raise NotConfigured("No settings saved at /nowhere")
        return self.settings


class RecordingReporter:
    def __init__(self) -> None:
        self.outcomes: list[CallOutcome] = []

    def report_outcome(self, outcome: CallOutcome) -> None:
        self.outcomes.append(outcome)


def make_response(status_code: int, body: str = "", reason: str = "") -> requests.Response:
    response = requests.Response()
    response.status_code = status_code
    response.reason = reason
    response._content = body.encode("utf-8")
    response.encoding = "utf-8"
    return response


@pytest.fixture
def session() -> MagicMock:
    return MagicMock(spec=requests.Session)


@pytest.fixture
def reporter() -> RecordingReporter:
    return RecordingReporter()


def make_handler(store: FakeStore, session: MagicMock, reporter: RecordingReporter) -> SchemeHandler:
    return SchemeHandler(store, CallDispatcher(session=session), reporter, AppConfig(timeout_seconds=2.0))


# ─── End-to-end scenarios ────────────────────────────────────────────────────


class TestScenarios:
    def test_originated(self, session: MagicMock, reporter: RecordingReporter) -> None:
        session.send.return_value = make_response(200, "OK", "OK")
        handler = make_handler(FakeStore(CONFIGURED), session, reporter)

        outcome = handler.handle("tel:+1-555-123-4567")

        assert outcome.kind is OutcomeKind.ORIGINATED
        assert outcome.number == "+15551234567"
        prepared = session.send.call_args.args[0]
        url = urlsplit(prepared.url)
        assert url.scheme == "https"
        assert url.hostname == "pbx.example.com"
        query = parse_qs(url.query)
        assert query["dest"] == ["+15551234567"]
        assert query["src"] == ["101"]
        assert query["key"] == ["abc123"]
        assert "auto_answer" not in query
        assert session.send.call_args.kwargs["timeout"] == 2.0
        assert reporter.outcomes == [outcome]

    def test_not_configured(self, session: MagicMock, reporter: RecordingReporter) -> None:
        outcome = make_handler(FakeStore(None), session, reporter).handle("tel:+1-555-123-4567")
        assert outcome.kind is OutcomeKind.NOT_CONFIGURED
        assert outcome.number == "+15551234567"
        assert "configure" in outcome.describe()
        session.send.assert_not_called()
        assert reporter.outcomes == [outcome]

    def test_invalid_number(self, session: MagicMock, reporter: RecordingReporter) -> None:
        store = FakeStore(CONFIGURED)
        outcome = make_handler(store, session, reporter).handle("tel:")
        assert outcome.kind is OutcomeKind.INVALID_NUMBER
        assert store.loads == 0
        session.send.assert_not_called()

    def test_rejected(self, session: MagicMock, reporter: RecordingReporter) -> None:
        session.send.return_value = make_response(401, "invalid key", "Unauthorized")
        outcome = make_handler(FakeStore(CONFIGURED), session, reporter).handle("tel:+1-555-123-4567")
        assert outcome.kind is OutcomeKind.REJECTED
        assert (outcome.status_code, outcome.message) == (401, "invalid key")
        assert "401" in outcome.describe()

    def test_timeout(self, session: MagicMock, reporter: RecordingReporter) -> None:
        session.send.side_effect = requests.exceptions.ConnectTimeout("timed out")
        outcome = make_handler(FakeStore(CONFIGURED), session, reporter).handle("tel:+1-555-123-4567")
        assert outcome.kind is OutcomeKind.UNREACHABLE
        assert outcome.cause == "timeout"
        assert session.send.call_count == 1


# ─── State machine ───────────────────────────────────────────────────────────


class TestStateMachine:
    def test_full_path(self, session: MagicMock, reporter: RecordingReporter) -> None:
        session.send.return_value = make_response(200)
        handler = make_handler(FakeStore(CONFIGURED), session, reporter)
        inv = handler.run("tel:5551234")
        assert inv.history == [
            HandlerState.START,
            HandlerState.NORMALIZING,
            HandlerState.LOADING_SETTINGS,
            HandlerState.BUILDING,
            HandlerState.DISPATCHING,
            HandlerState.DONE,
        ]
        assert inv.state is HandlerState.DONE
        assert inv.outcome is not None and inv.outcome.ok

    def test_normalizing_failure_is_terminal(self, session: MagicMock, reporter: RecordingReporter) -> None:
        handler = make_handler(FakeStore(CONFIGURED), session, reporter)
        inv = handler.run("tel:---")
        assert inv.history == [HandlerState.START, HandlerState.NORMALIZING, HandlerState.DONE]

    def test_incomplete_settings(self, session: MagicMock, reporter: RecordingReporter) -> None:
        store = FakeStore(Settings(domain="pbx.example.com", extension="101", key=""))
        handler = make_handler(store, session, reporter)
        inv = handler.run("tel:5551234")
        outcome = inv.outcome
        assert outcome is not None
        assert outcome.kind is OutcomeKind.INCOMPLETE_SETTINGS
        assert "key" in outcome.message
        assert inv.history[-2] is HandlerState.BUILDING
        session.send.assert_not_called()

    def test_invocations_are_independent(self, session: MagicMock, reporter: RecordingReporter) -> None:
        session.send.return_value = make_response(200)
        store = FakeStore(CONFIGURED)
        handler = make_handler(store, session, reporter)
        first = handler.handle("tel:111")
        second = handler.handle("tel:")
        third = handler.handle("tel:222")
        assert [o.kind for o in (first, second, third)] == [
            OutcomeKind.ORIGINATED,
            OutcomeKind.INVALID_NUMBER,
            OutcomeKind.ORIGINATED,
        ]
        assert third.number == "222"
        assert store.loads == 2
        assert session.send.call_count == 2

    def test_settings_loaded_per_invocation(self, session: MagicMock, reporter: RecordingReporter) -> None:
        session.send.return_value = make_response(200)
        store = FakeStore(CONFIGURED)
        handler = make_handler(store, session, reporter)
        handler.handle("tel:111")
        store.settings = Settings(domain="other.example.com", extension="202", key="k")
        handler.handle("tel:111")
        assert urlsplit(session.send.call_args.args[0].url).hostname == "other.example.com"

    def test_without_reporter(self, session: MagicMock) -> None:
        session.send.return_value = make_response(200)
        handler = SchemeHandler(FakeStore(CONFIGURED), CallDispatcher(session=session))
        assert handler.handle("tel:5551234").ok

    def test_fake_dispatcher(self) -> None:
        dispatcher = MagicMock()
        dispatcher.dispatch.return_value = CallOutcome.originated("5551234", 200)
        handler = SchemeHandler(FakeStore(CONFIGURED), dispatcher, config=AppConfig(timeout_seconds=1.0))
        assert handler.handle("tel:555-1234").ok
        request, timeout = dispatcher.dispatch.call_args.args
        assert timeout == 1.0
        assert dict(request.params)["dest"] == "5551234"
        assert dispatcher.dispatch.call_args.kwargs["number"] == "5551234"


class TestProtocols:
    def test_real_components_satisfy_protocols(self, tmp_path: Path) -> None:
        assert isinstance(SettingsStore(tmp_path / "p.yaml"), SettingsSource)
        assert isinstance(CallDispatcher(session=MagicMock(spec=requests.Session)), Dispatcher)
        assert isinstance(RecordingReporter(), OutcomeReporter)

    def test_real_store_not_configured(self, tmp_path: Path, session: MagicMock, reporter: RecordingReporter) -> None:
        handler = SchemeHandler(SettingsStore(tmp_path / "missing.yaml"), CallDispatcher(session=session), reporter)
        assert handler.handle("tel:5551234").kind is OutcomeKind.NOT_CONFIGURED
        session.send.assert_not_called()


# ─── Malformed input and concurrent use ──────────────────────────────────────


class TestRobustness:
    def test_malformed_domain_is_reported(self, session: MagicMock, reporter: RecordingReporter) -> None:
        store = FakeStore(Settings(domain="pbx.example.com:abc", extension="101", key="k"))
        outcome = make_handler(store, session, reporter).handle("tel:5551234")
        assert outcome.kind is OutcomeKind.UNREACHABLE
        assert outcome.cause == "transport"
        assert reporter.outcomes == [outcome]
        session.send.assert_not_called()

    def test_concurrent_runs_keep_their_own_invocation(self) -> None:
        both_dispatching = threading.Barrier(2, timeout=5)

        def dispatch(request, timeout, number=None):
            both_dispatching.wait()
            return CallOutcome.originated(number, 200)

        dispatcher = MagicMock()
        dispatcher.dispatch.side_effect = dispatch
        handler = SchemeHandler(FakeStore(CONFIGURED), dispatcher)

        results: dict[str, str] = {}

        def click(link: str) -> None:
            results[link] = handler.run(link).number

        threads = [threading.Thread(target=click, args=(link,)) for link in ("tel:111", "tel:222")]
        for t in threads:
            t.start()
        for t in threads:
            t.join(5)

        assert results == {"tel:111": "111", "tel:222": "222"}
