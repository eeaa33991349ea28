"""Exception hierarchy for ollama-provider."""


class OllamaProviderError(Exception):
    """Base class for errors raised by this package."""
    pass


class ConfigurationError(OllamaProviderError, ValueError):
    """Required request input is absent. Never retried."""
    pass


class InvalidRequestError(ConfigurationError):
    """Request has neither messages nor a prompt to send."""
    pass


class OllamaError(OllamaProviderError):
    """Human-readable error from the Ollama backend or its transport."""
    pass


class MalformedResponseError(OllamaError):
    """Backend answered, but not in a shape we understand."""
    pass
