"""Outcome of one click-to-call invocation.

A single tagged dataclass: ``kind`` says what happened, the remaining
fields carry whatever detail that kind has (status code and server message
for ``REJECTED``, cause for ``UNREACHABLE``, a hint for local failures).
"""

import dataclasses
from enum import StrEnum, auto


class OutcomeKind(StrEnum):
    ORIGINATED = auto()
    REJECTED = auto()
    UNREACHABLE = auto()
    # local failures, decided before any network traffic
    INVALID_NUMBER = auto()
    NOT_CONFIGURED = auto()
    INCOMPLETE_SETTINGS = auto()


LOCAL_FAILURES: frozenset[OutcomeKind] = frozenset(
    {OutcomeKind.INVALID_NUMBER, OutcomeKind.NOT_CONFIGURED, OutcomeKind.INCOMPLETE_SETTINGS}
)


@dataclasses.dataclass(frozen=True)
class CallOutcome:
    """Result of a call attempt, consumed by the user feedback surface only.

    Attributes:
        kind: What happened.
        number: Normalized number, empty if normalization failed.
        status_code: HTTP status for ``ORIGINATED`` / ``REJECTED``.
        message: Server message (``REJECTED``) or user-facing hint.
        cause: ``timeout``, ``connection``, ``tls`` or ``transport`` for
            ``UNREACHABLE``.
    """

    kind: OutcomeKind
    number: str = ""
    status_code: int | None = None
    message: str = ""
    cause: str = ""

    @classmethod
    def originated(cls, number: str, status_code: int) -> "CallOutcome":
        return cls(OutcomeKind.ORIGINATED, number=number, status_code=status_code)

    @classmethod
    def rejected(cls, number: str, status_code: int, message: str = "") -> "CallOutcome":
        return cls(OutcomeKind.REJECTED, number=number, status_code=status_code, message=message)

    @classmethod
    def unreachable(cls, number: str, cause: str, message: str = "") -> "CallOutcome":
        return cls(OutcomeKind.UNREACHABLE, number=number, cause=cause, message=message)

    @classmethod
    def local_failure(cls, kind: OutcomeKind, message: str, number: str = "") -> "CallOutcome":
        if kind not in LOCAL_FAILURES:
            raise ValueError(f"{kind} is not a local failure")
        return cls(kind, number=number, message=message)

    @property
    def ok(self) -> bool:
        return self.kind is OutcomeKind.ORIGINATED

    @property
    def title(self) -> str:
        if self.ok:
            return "Call Initiated"
        if self.kind in (OutcomeKind.NOT_CONFIGURED, OutcomeKind.INCOMPLETE_SETTINGS):
            return "Click-To-Call Not Configured"
        return "Call Failed"

    def describe(self) -> str:
        """One-line, user-facing description with enough detail to self-correct."""
        target = self.number or "number"
        match self.kind:
            case OutcomeKind.ORIGINATED:
                return f"Calling {self.number}..."
            case OutcomeKind.REJECTED:
                detail = f": {self.message}" if self.message else ""
                return f"Failed to call {target}: server rejected the request ({self.status_code}){detail}"
            case OutcomeKind.UNREACHABLE:
                detail = f" ({self.message})" if self.message else ""
                return f"Failed to call {target}: PBX unreachable [{self.cause}]{detail}"
            case OutcomeKind.INVALID_NUMBER:
                return f"Not a dialable number: {self.message}"
            case OutcomeKind.NOT_CONFIGURED:
                return f"Configure your settings first (clicktocall configure). {self.message}"
            case OutcomeKind.INCOMPLETE_SETTINGS:
                return f"Settings incomplete: {self.message}. Run 'clicktocall configure'."
        return self.kind.value
