import logging
import os

from rich.console import Console
from rich.logging import RichHandler

# -------------------------------------------------
# Console with proper color handling
# -------------------------------------------------
console = Console(force_terminal=True, color_system="truecolor")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# -------------------------------------------------
# Root logging config
# -------------------------------------------------
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(message)s",  # Rich handles formatting
    datefmt="[%H:%M:%S.%f]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            tracebacks_show_locals=False,
            show_time=True,
            show_level=True,
            show_path=True,
            log_time_format="%H:%M:%S.%f",
        )
    ],
)

# -------------------------------------------------
# Silence noisy libraries
# -------------------------------------------------
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)
logging.getLogger("sqlalchemy.dialects").setLevel(logging.WARNING)
logging.getLogger("sqlalchemy.orm").setLevel(logging.WARNING)

logging.getLogger("uvicorn").setLevel(logging.INFO)
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
logging.getLogger("uvicorn.error").setLevel(logging.INFO)

logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("urllib3").setLevel(logging.WARNING)
logging.getLogger("pypdf").setLevel(logging.ERROR)


class CustomLogger:
    """Hands out named loggers that share the Rich root handler."""

    def __init__(self, name: str = "persona_chat"):
        self.name = name

    def get_logger(self, name: str | None = None) -> logging.Logger:
        return logging.getLogger(name or self.name)
