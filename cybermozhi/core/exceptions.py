"""Error taxonomy shared by the model, conversation and storage layers."""
from typing import Optional


class CyberMozhiError(Exception):
    """Base class for every error raised by the service itself."""


class InvalidRequestError(CyberMozhiError):
    """Malformed or empty turn request, rejected before any side effect."""


class ConfigurationError(CyberMozhiError):
    """No credentials (or another required setting) are configured."""


class InvalidInputError(CyberMozhiError):
    """Structured input failed the template's declared shape; never sent to the provider."""

    def __init__(self, template_id: str, errors: Optional[list] = None) -> None:
        self.template_id = template_id
        self.errors = errors or []
        super().__init__(f"Invalid input for template '{template_id}'")


class QuotaExhaustedError(CyberMozhiError):
    """One credential hit its provider quota or rate limit."""

    def __init__(self, key_hint: str, detail: str = "") -> None:
        self.key_hint = key_hint
        self.detail = detail
        super().__init__(f"Quota exhausted for key {key_hint}: {detail}" if detail else f"Quota exhausted for key {key_hint}")


# Not a QuotaExhaustedError subclass: a pool that is exhausted inside a tool call
# must not make the enclosing rotation try its next key.
class AllQuotaExhaustedError(CyberMozhiError):
    """Every credential in the pool failed with a quota error."""

    def __init__(self, attempts: int) -> None:
        self.attempts = attempts
        super().__init__(f"All {attempts} API key(s) are quota-exhausted")


class EmptyOutputError(CyberMozhiError):
    """The model returned nothing usable, usually because safety filtering suppressed it."""


class TransportError(CyberMozhiError):
    """Any other provider-side failure: network, model not found, bad key."""

    def __init__(self, detail: str, status_code: Optional[int] = None) -> None:
        self.detail = detail
        self.status_code = status_code
        super().__init__(detail)


class PersistenceError(CyberMozhiError):
    """Reading or writing session, message or profile records failed."""
