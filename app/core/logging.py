"""
Process-wide logging setup.

Stdout only; gunicorn and the container runtime capture it. Modules log through
`logging.getLogger(__name__)`.
"""
import logging

_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level.upper(), format=_FORMAT)
    # SQL echo is controlled by SQLAlchemy itself; keep its noise out of INFO.
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
