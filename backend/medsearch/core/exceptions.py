"""
Custom Exceptions

Exception hierarchy for the search service. Source errors are raised by
connectors and absorbed by the source gateway; nothing below escapes the
pipeline boundary.
"""


class MedSearchError(Exception):
    """Base exception for all application errors."""
    pass


# === Data Source Errors ===

class SourceError(MedSearchError):
    """Base exception for data source errors."""
    def __init__(self, source_name: str, message: str):
        self.source_name = source_name
        self.message = message
        super().__init__(f"{source_name}: {message}")


class SourceTimeoutError(SourceError):
    """Data source timed out during request."""
    def __init__(self, source_name: str, timeout_seconds: float):
        super().__init__(source_name, f"Request timed out after {timeout_seconds}s")
        self.timeout_seconds = timeout_seconds


class SourceConnectionError(SourceError):
    """Could not reach the data source."""
    def __init__(self, source_name: str, detail: str = None):
        msg = "Connection failed"
        if detail:
            msg += f": {detail}"
        super().__init__(source_name, msg)


class SourceRateLimitError(SourceError):
    """Data source rate limit exceeded."""
    def __init__(self, source_name: str, retry_after: int = None):
        msg = "Rate limit exceeded"
        if retry_after:
            msg += f", retry after {retry_after}s"
        super().__init__(source_name, msg)
        self.retry_after = retry_after


class SourceHTTPError(SourceError):
    """Data source returned an HTTP error status."""
    def __init__(self, source_name: str, status_code: int, detail: str = None):
        msg = f"HTTP {status_code}"
        if detail:
            msg += f": {detail}"
        super().__init__(source_name, msg)
        self.status_code = status_code


class SourceParseError(SourceError):
    """Failed to parse response from data source."""
    def __init__(self, source_name: str, detail: str = None):
        msg = "Failed to parse response"
        if detail:
            msg += f": {detail}"
        super().__init__(source_name, msg)


# === Pipeline Errors ===

class PipelineError(MedSearchError):
    """Programming error inside the search pipeline."""
    def __init__(self, phase: str, message: str):
        self.phase = phase
        self.message = message
        super().__init__(f"Search pipeline failed during {phase}: {message}")


class VocabularyError(MedSearchError):
    """Vocabulary tables could not be loaded or validated."""
    def __init__(self, path: str, detail: str):
        self.path = path
        super().__init__(f"Invalid vocabulary file {path}: {detail}")

