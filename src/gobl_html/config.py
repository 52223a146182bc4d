import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass(frozen=True)
class ServeConfig:
    """Process-wide settings, built once at startup and passed explicitly."""

    host: str = "0.0.0.0"
    port: int = 3000
    pdf: str = ""
    pdf_url: str | None = None
    shutdown_timeout: float = 10.0
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "ServeConfig":
        env = os.environ if environ is None else environ
        return cls(
            host=env.get("HOST", "0.0.0.0"),
            port=int(env.get("PORT", "3000")),
            pdf=env.get("GOBL_HTML_PDF", ""),
            pdf_url=env.get("GOBL_HTML_PDF_URL") or None,
            shutdown_timeout=float(env.get("GOBL_HTML_SHUTDOWN_TIMEOUT", "10")),
            log_level=env.get("LOG_LEVEL", "INFO").upper(),
        )


def configure_logging(level: str) -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
