"""
Comprehensive logging system using structlog.
Provides structured logging with different output formats and levels.
"""

import logging
import sys
from pathlib import Path
from typing import Optional
import structlog
from structlog.stdlib import LoggerFactory


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    log_file: Optional[str] = None,
    debug: bool = False
) -> None:
    """
    Set up structured logging with configurable output formats.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Output format (json or console)
        log_file: Optional log file path
        debug: Enable debug mode for more verbose logging
    """

    # Configure standard library logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )

    # Configure structlog processors
    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if debug:
        processors.append(structlog.processors.CallsiteParameterAdder())

    # Add format-specific processors
    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    # Set up file logging if specified
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(getattr(logging, log_level.upper()))
        file_handler.setFormatter(logging.Formatter('%(message)s'))

        logging.getLogger().addHandler(file_handler)

    logger = structlog.get_logger(__name__)
    logger.info(
        "Logging system initialized",
        level=log_level,
        format=log_format,
        file=str(log_file) if log_file else None,
        debug=debug
    )


def mask_identifier(value: Optional[str], keep: int = 3) -> Optional[str]:
    """Shorten user-supplied identifiers before they reach the logs."""
    if not value:
        return value
    if len(value) <= keep:
        return "*" * len(value)
    return value[:keep] + "..."


class AccountLogger:
    """
    Specialized logger for account and saved-book operations.
    """

    def __init__(self, name: str = "accounts"):
        self.logger = structlog.get_logger(name)

    def log_registration(self, user_id: str, username: str) -> None:
        """Log a newly created account."""
        self.logger.info(
            "User registered",
            user_id=user_id,
            username=username
        )

    def log_registration_rejected(self, reason: str) -> None:
        self.logger.warning(
            "Registration rejected",
            reason=reason
        )

    def log_login(self, user_id: str) -> None:
        """Log a successful login."""
        self.logger.info("User logged in", user_id=user_id)

    def log_login_failed(self, identifier: str) -> None:
        """Log a failed login without revealing which check failed."""
        self.logger.warning(
            "Login failed",
            identifier=mask_identifier(identifier)
        )

    def log_token_rejected(self, reason: str) -> None:
        """Log a presented token that failed verification."""
        self.logger.warning("Token rejected", reason=reason)

    def log_saved_book_transition(
        self,
        operation: str,
        user_id: str,
        book_id: str,
        changed: bool,
        count: Optional[int] = None
    ) -> None:
        """Log a save/remove call; no-op calls are logged at debug level."""
        level = "info" if changed else "debug"
        getattr(self.logger, level)(
            "Saved book operation",
            operation=operation,
            user_id=user_id,
            book_id=book_id,
            changed=changed,
            count=count
        )
