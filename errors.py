"""Exception types shared by the enrichment tool."""


class CoverToolError(Exception):
    """Base class for all errors raised by the tool."""


class ConfigError(CoverToolError):
    """config.yaml is unreadable or holds values of the wrong type."""


class InputValidationError(CoverToolError):
    """The input game list is malformed. Raised before any run starts."""


class InvalidTransitionError(CoverToolError):
    """An engine control call is not valid in the current run mode."""


class ProviderError(CoverToolError):
    """A provider request failed (network, HTTP status or payload)."""

    def __init__(self, provider_id: str, message: str):
        super().__init__(f"{provider_id}: {message}")
        self.provider_id = provider_id
