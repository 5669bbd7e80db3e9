"""
Error Handling - Centralized error policies and custom exceptions.

Fatal errors (missing root, nothing to crawl, cancellation) propagate to the
caller. Everything that can be resolved by skipping one file or treating the
cache as empty is logged here and recovered where it happened.
"""

import logging
from enum import Enum, auto
from dataclasses import dataclass
from typing import Optional
from pathlib import Path


logger = logging.getLogger(__name__)


class ErrorAction(Enum):
    """What to do when an error occurs."""
    SKIP = auto()           # Skip this item, continue processing
    ABORT = auto()          # Stop the entire crawl


class CrawlerError(Exception):
    """Base exception for crawler errors."""
    pass


class NotFoundError(CrawlerError):
    """Root directory is missing or is not a directory."""
    def __init__(self, path: Path):
        self.path = path
        super().__init__(f"Directory does not exist: {path}")


class EmptyResultError(CrawlerError):
    """No file survived filtering - almost always a filter misconfiguration."""
    def __init__(self, path: Path):
        self.path = path
        super().__init__(f"No files found in directory: {path}")


class FileReadError(CrawlerError):
    """A single file (or the ignore file) could not be read."""
    def __init__(self, path: Path, reason: Exception):
        self.path = path
        self.reason = reason
        super().__init__(f"Unable to read {path}: {reason}")


class CacheCorruptionError(CrawlerError):
    """The persisted hash cache is not valid JSON of the expected shape."""
    def __init__(self, path: Path, detail: str):
        self.path = path
        super().__init__(f"Malformed hash cache {path}: {detail}")


class CachePersistError(CrawlerError):
    """The hash cache could not be written or renamed into place."""
    def __init__(self, path: Path, reason: Exception):
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to write hash cache {path}: {reason}")


class OperationCancelledError(CrawlerError):
    """Cooperative cancellation was observed."""
    def __init__(self, message: str = "Operation cancelled by user"):
        super().__init__(message)


@dataclass
class ErrorPolicy:
    """Policy for handling a specific error type."""
    action: ErrorAction
    log_level: int
    message_template: str = "{file}: {error}"


# Error type to policy mapping (first isinstance match wins)
ERROR_POLICIES: dict[type, ErrorPolicy] = {
    OperationCancelledError: ErrorPolicy(
        action=ErrorAction.ABORT,
        log_level=logging.INFO,
        message_template="Cancelled while processing: {file}"
    ),
    NotFoundError: ErrorPolicy(
        action=ErrorAction.ABORT,
        log_level=logging.ERROR,
        message_template="{error}"
    ),
    EmptyResultError: ErrorPolicy(
        action=ErrorAction.ABORT,
        log_level=logging.ERROR,
        message_template="{error}"
    ),
    CacheCorruptionError: ErrorPolicy(
        action=ErrorAction.SKIP,
        log_level=logging.WARNING,
        message_template="{error} - using empty cache"
    ),
    CachePersistError: ErrorPolicy(
        action=ErrorAction.SKIP,
        log_level=logging.ERROR,
        message_template="{error}"
    ),
    FileReadError: ErrorPolicy(
        action=ErrorAction.SKIP,
        log_level=logging.WARNING,
        message_template="{error}"
    ),
    PermissionError: ErrorPolicy(
        action=ErrorAction.SKIP,
        log_level=logging.WARNING,
        message_template="Permission denied: {file}"
    ),
    FileNotFoundError: ErrorPolicy(
        action=ErrorAction.SKIP,
        log_level=logging.DEBUG,
        message_template="File not found (possibly deleted): {file}"
    ),
    UnicodeDecodeError: ErrorPolicy(
        action=ErrorAction.SKIP,
        log_level=logging.DEBUG,
        message_template="Cannot decode file (binary?): {file}"
    ),
    IsADirectoryError: ErrorPolicy(
        action=ErrorAction.SKIP,
        log_level=logging.DEBUG,
        message_template="Expected file, got directory: {file}"
    ),
    OSError: ErrorPolicy(
        action=ErrorAction.SKIP,
        log_level=logging.WARNING,
        message_template="OS error reading file: {file} - {error}"
    ),
}


def handle_error(
    error: Exception,
    file_path: Optional[Path] = None,
    context: str = ""
) -> ErrorAction:
    """
    Handle an error according to the defined policies.

    Args:
        error: The exception that occurred
        file_path: Path to the file being processed (if applicable)
        context: Additional context for logging

    Returns:
        The action to take (SKIP or ABORT)
    """
    policy = None
    for error_type, p in ERROR_POLICIES.items():
        if isinstance(error, error_type):
            policy = p
            break

    # Default policy for unknown errors
    if policy is None:
        policy = ErrorPolicy(
            action=ErrorAction.SKIP,
            log_level=logging.ERROR,
            message_template="Unexpected error: {file} - {error}"
        )

    file_str = str(file_path) if file_path else "<unknown>"
    message = policy.message_template.format(file=file_str, error=str(error))
    if context:
        message = f"[{context}] {message}"

    logger.log(policy.log_level, message)

    return policy.action
