from .custom_exception import (
    ConfigurationError,
    ContentFetchError,
    InvalidInputError,
    ModelProviderError,
    PersonaChatException,
    PersonaKeyFormatError,
    RateLimitError,
    TokenNotFoundError,
    UpstreamError,
    UpstreamTimeoutError,
    VectorStoreError,
    classify_provider_error,
)

__all__ = [
    "ConfigurationError",
    "ContentFetchError",
    "InvalidInputError",
    "ModelProviderError",
    "PersonaChatException",
    "PersonaKeyFormatError",
    "RateLimitError",
    "TokenNotFoundError",
    "UpstreamError",
    "UpstreamTimeoutError",
    "VectorStoreError",
    "classify_provider_error",
]
