# proofmeet/core/logging.py
import logging


def configure_logging(level: str = "INFO") -> None:
    """
    Configure root logging for the service.

    Modules log through `logging.getLogger(__name__)`; this only sets the
    format and level once at application startup.
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
