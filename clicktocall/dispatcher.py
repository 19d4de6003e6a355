"""Sending the origination request and classifying the PBX response.

This is the only blocking point of the pipeline, bounded by a total deadline.
One attempt per click: the user re-clicks to retry.

Classification:
    * HTTP 2xx -> ``ORIGINATED``
    * any other status -> ``REJECTED`` (status code + short server message)
    * timeout or deadline overrun / connection / TLS / other transport failure
      (including a URL that does not parse) -> ``UNREACHABLE``
"""

import json
import threading

import requests
from loguru import logger

from clicktocall.outcome import CallOutcome
from clicktocall.request_builder import CallRequest

DEFAULT_TIMEOUT: float = 5.0
MAX_MESSAGE_LENGTH: int = 200

_MESSAGE_KEYS: tuple[str, ...] = ("message", "error", "msg", "detail", "reason")


def _truncate(text: str) -> str:
    text = text.strip()
    if len(text) <= MAX_MESSAGE_LENGTH:
        return text
    return text[: MAX_MESSAGE_LENGTH - 3].rstrip() + "..."


def extract_server_message(body: str, reason: str = "") -> str:
    """Pick a short human-readable message out of a response body.

    Tries a JSON object (``message``/``error``/``msg``/``detail``/``reason``)
    or JSON string first, then the first line of a non-HTML text body, then
    the HTTP reason phrase.

    Args:
        body: Decoded response body, possibly empty.
        reason: HTTP reason phrase used as fallback (e.g. ``"Unauthorized"``).

    Returns:
        The message, at most ``MAX_MESSAGE_LENGTH`` characters; may be empty.
    """
    text = (body or "").strip()
    if text:
        try:
            parsed = json.loads(text)
        except ValueError:
            parsed = None

        if isinstance(parsed, str) and parsed.strip():
            return _truncate(parsed)
        if isinstance(parsed, dict):
            for key in _MESSAGE_KEYS:
                value = parsed.get(key)
                if isinstance(value, str) and value.strip():
                    return _truncate(value)
                if isinstance(value, dict) and isinstance(value.get("message"), str):
                    return _truncate(value["message"])
        elif parsed is None and not text.startswith("<"):
            return _truncate(text.splitlines()[0])

    return _truncate(reason or "")


def classify_response(number: str, status_code: int, body: str = "", reason: str = "") -> CallOutcome:
    """Map an HTTP status (and body) to ``ORIGINATED`` or ``REJECTED``.

    Total over all status codes: 2xx is ``ORIGINATED``, everything else
    ``REJECTED``.
    """
    if 200 <= status_code < 300:
        return CallOutcome.originated(number, status_code)
    return CallOutcome.rejected(number, status_code, extract_server_message(body, reason))


def number_of(request: CallRequest) -> str:
    """Best-effort destination number of *request*, for messages only."""
    params = dict(request.params)
    for name in ("dest", "dest_cid_number", "number", "destination", "to"):
        if params.get(name):
            return params[name]
    return ""


class _Exchange:
    """One HTTP exchange, run on a worker thread; the caller reads the result after ``join``."""

    def __init__(self, session: requests.Session, request: CallRequest, timeout: float, verify: bool, user_agent: str):
        self.session = session
        self.request = request
        self.timeout = timeout
        self.verify = verify
        self.user_agent = user_agent
        self.status_code: int = 0
        self.reason: str = ""
        self.body: str = ""
        self._error: Exception | None = None

    def run(self) -> None:
        try:
            prepared = self.request.prepare()
            prepared.headers["User-Agent"] = self.user_agent
            response = self.session.send(prepared, timeout=self.timeout, verify=self.verify, allow_redirects=True)
        except Exception as exc:  # re-raised on the calling thread by result()
            self._error = exc
            return

        self.status_code = response.status_code
        self.reason = response.reason or ""
        try:
            self.body = response.text
        except requests.exceptions.RequestException as exc:
            logger.bind(classname="CallDispatcher").debug(f"Could not read response body: {exc}")

    def result(self) -> None:
        """Re-raise whatever the finished exchange raised, if anything."""
        if self._error is not None:
            raise self._error


class CallDispatcher:
    """Sends ``CallRequest`` objects over a ``requests.Session``.

    Args:
        session: Session to use; a new one is created when omitted (tests
            inject a mock here).
        verify_tls: Verify the server certificate.
        user_agent: ``User-Agent`` header sent with each request.
    """

    def __init__(
        self,
        session: requests.Session | None = None,
        verify_tls: bool = True,
        user_agent: str = "click-to-call",
    ) -> None:
        self._session = session if session is not None else requests.Session()
        self.verify_tls = verify_tls
        self.user_agent = user_agent
        self._log = logger.bind(classname="CallDispatcher")

    def dispatch(self, request: CallRequest, timeout: float = DEFAULT_TIMEOUT, number: str | None = None) -> CallOutcome:
        """Send *request* once and classify what comes back.

        The whole exchange (connect, redirects, headers and body) runs on a
        daemon worker thread that gets *timeout* seconds in total.  A server
        still trickling data at the deadline is abandoned and reported as
        ``UNREACHABLE`` with cause ``timeout``.

        Args:
            request: Output of ``request_builder.build``.
            timeout: Total seconds allowed for the exchange.
            number: Destination number for the outcome; derived from the
                request parameters when omitted.

        Returns:
            ``ORIGINATED``, ``REJECTED`` or ``UNREACHABLE``; never raises for
            network problems or malformed URLs.
        """
        number = number if number is not None else number_of(request)
        self._log.info(f"GET {request.redacted_url} (timeout {timeout}s)")

        exchange = _Exchange(self._session, request, timeout, self.verify_tls, self.user_agent)
        worker = threading.Thread(target=exchange.run, name="clicktocall-dispatch", daemon=True)
        worker.start()
        worker.join(timeout)

        if worker.is_alive():
            self._log.warning(f"No complete response within {timeout}s, abandoning request")
            return CallOutcome.unreachable(number, "timeout", f"no response within {timeout:g}s")

        try:
            exchange.result()
        except requests.exceptions.Timeout as exc:
            self._log.warning(f"Request timed out after {timeout}s: {type(exc).__name__}")
            return CallOutcome.unreachable(number, "timeout", f"no response within {timeout:g}s")
        except requests.exceptions.SSLError as exc:
            self._log.warning(f"TLS error: {request.scrub(str(exc))}")
            return CallOutcome.unreachable(number, "tls", _truncate(request.scrub(str(exc))))
        except requests.exceptions.ConnectionError as exc:
            self._log.warning(f"Connection failed: {request.scrub(str(exc))}")
            return CallOutcome.unreachable(number, "connection", _truncate(request.scrub(str(exc))))
        except requests.exceptions.RequestException as exc:
            self._log.warning(f"Request failed: {request.scrub(str(exc))}")
            return CallOutcome.unreachable(number, "transport", _truncate(request.scrub(str(exc))))

        outcome = classify_response(number, exchange.status_code, exchange.body, exchange.reason)
        self._log.debug(f"HTTP {exchange.status_code} -> {outcome.kind}")
        return outcome

    def close(self) -> None:
        self._session.close()
