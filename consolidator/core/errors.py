"""Exception hierarchy for citation consolidation."""


class ConsolidationError(Exception):
    """A consolidation call failed for a reason other than "nothing found"."""


class ConfigurationError(ConsolidationError):
    """Registry settings are missing or invalid (e.g. no credentials)."""


class DuplicateKeyError(ConsolidationError):
    """A request is already outstanding under this correlation key."""

    def __init__(self, key: str):
        super().__init__(f"Request already outstanding for key: {key}")
        self.key = key


# ── Per-lookup failures ──────────────────────────────────────────────
# Raised inside the gateway worker only; they are converted into a
# LookupResponse status before reaching the resolver.


class RegistryLookupError(ConsolidationError):
    """A single registry lookup failed."""


class TransportError(RegistryLookupError):
    """Network or connection failure while talking to the registry."""


class MalformedResponseError(RegistryLookupError):
    """The registry answered with a body that could not be decoded."""
