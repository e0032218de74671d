"""Custom exceptions for the DynamoDB chat agent."""


class ConfigError(Exception):
    """Raised when configuration is invalid or missing."""
    pass


class PromptTemplateError(Exception):
    """Raised when a prompt template fails to render."""
    pass


class DataStoreError(Exception):
    """Raised when a DynamoDB lookup or query fails."""
    pass


class ProviderError(Exception):
    """Base class for failures talking to the LLM provider."""
    pass


class ProviderConnectionError(ProviderError):
    """Raised when unable to reach the LLM provider."""
    pass


class ProviderAuthError(ProviderError):
    """Raised when the provider rejects the API credential."""
    pass


class ProviderModelError(ProviderError):
    """Raised when the requested model is not available."""
    pass


class ProviderResponseError(ProviderError):
    """Raised when the provider returns an error status or an unusable body."""
    pass


class ToolArgumentError(Exception):
    """Raised when a tool receives missing or malformed arguments."""
    pass


class ChatError(Exception):
    """Raised when a chat run is aborted by a provider failure."""
    pass


class ProtocolError(Exception):
    """Raised when the conversation protocol between model and tools is violated."""
    pass


class MaxIterationsError(ProtocolError):
    """Raised when the tool loop exceeds the configured number of rounds."""
    pass
