"""Exception hierarchy for the click-to-call pipeline.

Every error is terminal for the invocation that raised it.  The scheme
handler turns the pipeline errors into a local-failure ``CallOutcome``;
the CLI turns the rest into exit code 1.
"""


class ClickToCallError(Exception):
    """Base class for all click-to-call errors."""


class InvalidNumber(ClickToCallError):
    """Raised when a link carries no dialable digits or uses an unsupported scheme."""


class NotConfigured(ClickToCallError):
    """Raised when no (readable) settings have been saved yet."""


class IncompleteSettings(ClickToCallError):
    """Raised when domain, extension or key is empty.

    Attributes:
        missing: Names of the empty fields, in declaration order.
    """

    def __init__(self, missing: list[str]) -> None:
        self.missing = list(missing)
        super().__init__(f"Missing settings: {', '.join(self.missing)}")


class PersistenceError(ClickToCallError):
    """Raised when the settings file cannot be written."""


class RegistrationError(ClickToCallError):
    """Raised when the tel: handler cannot be (un)registered with the desktop."""
