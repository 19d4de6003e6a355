"""Construction of the PBX click-to-call HTTP request.

``build`` is pure: it validates the settings, fills the configured
``ApiTemplate`` and returns a ``CallRequest``; nothing is sent here.
"""

import dataclasses
from urllib.parse import quote_plus, urlencode

import requests

from clicktocall.appconfig import ApiTemplate, placeholders_of
from clicktocall.errors import IncompleteSettings
from clicktocall.settings import Settings

REDACTED = "***"


@dataclasses.dataclass(frozen=True)
class CallRequest:
    """A fully specified origination request.

    Attributes:
        method: HTTP method, always ``"GET"``.
        base_url: Scheme, host and path without query string.
        params: Ordered query parameters as ``(name, value)`` pairs.
        secret_params: Names of parameters whose value must not be logged.
    """

    method: str
    base_url: str
    params: tuple[tuple[str, str], ...]
    secret_params: frozenset[str] = frozenset()

    @property
    def url(self) -> str:
        return f"{self.base_url}?{urlencode(self.params)}" if self.params else self.base_url

    @property
    def redacted_url(self) -> str:
        """URL safe for logs and messages: secret parameter values are masked."""
        masked = tuple((k, REDACTED if k in self.secret_params else v) for k, v in self.params)
        return f"{self.base_url}?{urlencode(masked, safe='*')}" if masked else self.base_url

    def scrub(self, text: str) -> str:
        """Mask secret parameter values (plain and URL-encoded) inside *text*."""
        for name, value in self.params:
            if name in self.secret_params and value:
                text = text.replace(quote_plus(value), REDACTED).replace(value, REDACTED)
        return text

    def prepare(self) -> requests.PreparedRequest:
        return requests.Request(self.method, self.url).prepare()

    def __repr__(self) -> str:
        return f"CallRequest(method={self.method!r}, url={self.redacted_url!r})"


def base_url_for(domain: str, path: str) -> str:
    """Join *domain* and *path*; HTTPS unless the domain carries an explicit scheme."""
    host = domain.strip().rstrip("/")
    if not host.lower().startswith(("http://", "https://")):
        host = f"https://{host}"
    return f"{host}{path}"


def build(settings: Settings, normalized_number: str, api: ApiTemplate | None = None) -> CallRequest:
    """Build the origination request for *normalized_number*.

    Args:
        settings: Snapshot of the user settings.
        normalized_number: Output of ``clicktocall.number.normalize``.
        api: Endpoint template; the FusionPBX default when omitted.

    Returns:
        The request to hand to ``CallDispatcher.dispatch``.

    Raises:
        IncompleteSettings: If domain, extension or key is empty.
    """
    missing = settings.missing_fields()
    if missing:
        raise IncompleteSettings(missing)

    api = api or ApiTemplate()
    key = settings.key.get_secret_value()
    values = {"number": normalized_number, "extension": settings.extension, "key": key}

    params: list[tuple[str, str]] = [(name, template.format(**values)) for name, template in api.params.items()]
    if settings.auto_answer:
        params.append((api.auto_answer_param, api.auto_answer_value))

    secret = frozenset(name for name, template in api.params.items() if "key" in placeholders_of(template))

    return CallRequest(
        method="GET",
        base_url=base_url_for(settings.domain, api.path),
        params=tuple(params),
        secret_params=secret,
    )
