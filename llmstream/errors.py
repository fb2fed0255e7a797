"""Errors raised by llmstream"""


class LLMStreamError(RuntimeError):
    """Base error for provider-layer failures"""


class ConfigurationError(LLMStreamError):
    """Raised when a provider is missing its API key or base URL"""


class CapabilityError(LLMStreamError):
    """Raised when a provider does not declare the requested operation"""

    def __init__(self, provider: str, operation: str):
        self.provider = provider
        self.operation = operation
        super().__init__(f"Provider {provider} does not support {operation} capability")


class NetworkError(LLMStreamError):
    """Non-2xx response or transport failure"""

    def __init__(self, message: str, status_code: int | None = None, body: str = ""):
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class ParseError(LLMStreamError):
    """A single malformed stream frame.

    The decoder records and logs these; they never abort a stream.
    """

    def __init__(self, line: str, reason: str):
        self.line = line
        self.reason = reason
        super().__init__(f"Failed to parse stream frame: {reason}")


class ValidationError(LLMStreamError):
    """Message ordering violation"""

    def __init__(self, message: str, index: int | None = None):
        self.index = index
        super().__init__(message)


class ProviderNotFoundError(LLMStreamError, KeyError):
    """Raised when a provider name is not in the registry"""

    def __init__(self, name: str, available: list[str] | None = None):
        self.name = name
        msg = f"Unknown provider: {name}"
        if available:
            msg += f". Available: {', '.join(available)}"
        super().__init__(msg)

    def __str__(self) -> str:
        return self.args[0]
