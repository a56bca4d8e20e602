"""
Custom exception classes and error handling utilities.
"""

from typing import Optional, Dict, Any
import traceback


class ImgliexError(Exception):
    """Base exception for all imgliex errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class MalformedInputError(ImgliexError):
    """Exception raised when the chapter listing cannot be opened or read."""

    def __init__(self, source: str, cause: Optional[BaseException] = None):
        message = f"Cannot open chapter listing {source}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message, {"source": source, "cause": str(cause) if cause else None})
        self.source = source
        self.cause = cause


class FetchError(ImgliexError):
    """Exception raised when a chapter page cannot be retrieved."""

    def __init__(self, url: str, cause: Any):
        super().__init__(f"Fetch failed for {url}: {cause}", {"url": url, "cause": str(cause)})
        self.url = url
        self.cause = cause


class PersistError(ImgliexError):
    """Exception raised when chapter output cannot be read or written."""

    def __init__(self, chapter_number: Optional[int], path: Any, cause: Any):
        subject = f"chapter {chapter_number}" if chapter_number is not None else "output folder"
        super().__init__(
            f"Output error for {subject} ({path}): {cause}",
            {"chapter_number": chapter_number, "path": str(path), "cause": str(cause)}
        )
        self.chapter_number = chapter_number
        self.path = path
        self.cause = cause


class NotFoundInIndex(ImgliexError):
    """A requested chapter number has no entry in the listing."""

    def __init__(self, chapter_number: int):
        super().__init__(
            f"Chapter {chapter_number} not found in input file",
            {"chapter_number": chapter_number}
        )
        self.chapter_number = chapter_number


class ConfigurationError(ImgliexError):
    """Exception raised for configuration-related issues."""
    pass


class ValidationError(ImgliexError):
    """Exception raised for invalid arguments or data."""
    pass



def handle_error(
    error: Exception,
    logger,
    context: Optional[Dict[str, Any]] = None,
    reraise: bool = True
) -> None:
    """
    Log an error together with its details and traceback.

    Args:
        error: The exception that occurred
        logger: Logger instance to use for logging
        context: Additional context information
        reraise: Whether to reraise the exception after logging
    """
    error_context = {
        "error_type": type(error).__name__,
        "error_message": str(error),
        "traceback": traceback.format_exc(),
        **(context or {})
    }

    if isinstance(error, ImgliexError):
        error_context.update(error.details)

    logger.error("Error occurred: %s", error_context)

    if reraise:
        raise error
