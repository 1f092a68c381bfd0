import re
import sys
import traceback
from typing import Optional


class PersonaChatException(Exception):
    """
    Base error for the persona chat backend.

    Accepts the wrapped cause either as an exception instance or as the `sys`
    module (current exception context), and records where it was raised.
    `code` and `status_code` are what the API layer sends back to the caller.
    """

    code = "CHAT_FAILED"
    status_code = 500

    def __init__(self, error_message, error_details: Optional[object] = None):
        self.error_message = str(error_message)

        exc_type = exc_value = exc_tb = None
        if isinstance(error_details, BaseException):
            exc_type = type(error_details)
            exc_value = error_details
            exc_tb = error_details.__traceback__
        elif error_details is not None and hasattr(error_details, "exc_info"):
            exc_type, exc_value, exc_tb = error_details.exc_info()
        else:
            exc_type, exc_value, exc_tb = sys.exc_info()

        # walk to the innermost frame
        last_tb = exc_tb
        while last_tb and last_tb.tb_next:
            last_tb = last_tb.tb_next

        self.file_name = last_tb.tb_frame.f_code.co_filename if last_tb else "<unknown>"
        self.lineno = last_tb.tb_lineno if last_tb else -1

        if exc_type and exc_tb:
            self.traceback_str = "".join(
                traceback.format_exception(exc_type, exc_value, exc_tb)
            )
        else:
            self.traceback_str = ""

        super().__init__(self.error_message)

    def __str__(self):
        return (
            f"Error in [{self.file_name}] at line [{self.lineno}] "
            f"| Message: {self.error_message}"
        )

    def to_payload(self) -> dict:
        return {"code": self.code, "message": self.error_message}


class ConfigurationError(PersonaChatException):
    code = "CONFIGURATION_ERROR"
    status_code = 500


class InvalidInputError(PersonaChatException):
    code = "INVALID_REQUEST"
    status_code = 400


class PersonaKeyFormatError(InvalidInputError):
    code = "INVALID_PERSONA_KEY"


class TokenNotFoundError(PersonaChatException):
    code = "TOKEN_NOT_FOUND"
    status_code = 404


class UpstreamError(PersonaChatException):
    code = "UPSTREAM_ERROR"
    status_code = 502


class ContentFetchError(UpstreamError):
    code = "IPFS_ERROR"


class ModelProviderError(UpstreamError):
    code = "MODEL_ERROR"


class VectorStoreError(UpstreamError):
    code = "VECTOR_STORE_ERROR"
    status_code = 500


class UpstreamTimeoutError(UpstreamError):
    code = "UPSTREAM_TIMEOUT"
    status_code = 504


class RateLimitError(PersonaChatException):
    code = "RATE_LIMIT_EXCEEDED"
    status_code = 429


_RATE_LIMIT_TYPES = {"resourceexhausted", "ratelimiterror", "toomanyrequests"}
_RATE_LIMIT_PATTERN = re.compile(
    r"\b429\b|quota exceeded|resource[ _]?exhausted|rate[ _]?limit|too many requests"
)


def _is_rate_limited(e: BaseException) -> bool:
    for attr in ("status_code", "code", "status"):
        value = getattr(e, attr, None)
        if value == 429 or str(value) == "429":
            return True
    if type(e).__name__.lower() in _RATE_LIMIT_TYPES:
        return True
    return bool(_RATE_LIMIT_PATTERN.search(str(e).lower()))


def classify_provider_error(message: str, e: BaseException) -> PersonaChatException:
    """Map a raw embedding/chat provider failure onto the error taxonomy."""
    if isinstance(e, PersonaChatException):
        return e
    if _is_rate_limited(e):
        return RateLimitError(f"{message}: provider rate limit exceeded", e)
    return ModelProviderError(f"{message}: {e}", e)
