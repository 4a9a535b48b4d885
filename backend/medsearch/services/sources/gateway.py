"""
Source gateway.

Wraps a BaseSource with the cross-cutting behaviour every call needs:
cache lookup, a per-call timeout and a configurable retry policy. The
gateway never raises; a failing source contributes an empty list and a
log line.

Query rewriting (PubMed field tags for one source, plain keywords for
another) is composed in front of a source with QueryRewritingSource
rather than through subclassing.
"""
import asyncio
import re
from dataclasses import dataclass
from typing import Callable, List, Optional

from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from medsearch.core.config import Settings
from medsearch.core.exceptions import (
    SourceConnectionError,
    SourceError,
    SourceHTTPError,
    SourceRateLimitError,
    SourceTimeoutError,
)
from medsearch.core.logging import get_logger
from medsearch.schemas.records import RawRecord

from .base import BaseSource

logger = get_logger(__name__)

QueryRewriter = Callable[[str], str]


@dataclass(frozen=True)
class RetryPolicy:
    """How many times, and how patiently, a failed source call is retried."""
    max_attempts: int = 3
    backoff_seconds: float = 0.5
    max_backoff_seconds: float = 4.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.retry_max_attempts,
            backoff_seconds=settings.retry_backoff_seconds,
            max_backoff_seconds=settings.retry_max_backoff_seconds,
        )

    @staticmethod
    def is_retryable(error: BaseException) -> bool:
        """Transient failures are retried; client errors and parse errors are not."""
        if isinstance(error, (SourceRateLimitError, SourceTimeoutError, SourceConnectionError)):
            return True
        if isinstance(error, SourceHTTPError):
            return error.status_code >= 500
        return False

    def retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.backoff_seconds, max=self.max_backoff_seconds),
            retry=retry_if_exception(self.is_retryable),
            reraise=True,
        )


class SourceGateway:
    """
    Fault-isolating front for one source.

    search() returns an empty list on any failure, so a tier's fan-out
    never aborts because one source misbehaved.
    """

    def __init__(
        self,
        source: BaseSource,
        retry_policy: Optional[RetryPolicy] = None,
        timeout_seconds: float = 20.0,
        cache=None,
    ):
        self.source = source
        self.retry_policy = retry_policy or RetryPolicy()
        self.timeout_seconds = timeout_seconds
        self.cache = cache

    @property
    def name(self) -> str:
        return self.source.name

    async def _call_once(self, query: str, max_results: int) -> List[RawRecord]:
        try:
            return await asyncio.wait_for(
                self.source.search(query, max_results),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise SourceTimeoutError(self.name, self.timeout_seconds) from e

    async def search(self, query: str, max_results: int = 25) -> List[RawRecord]:
        # The cache client is blocking, so it runs on the default executor
        loop = asyncio.get_running_loop()
        if self.cache is not None:
            cached = await loop.run_in_executor(None, self.cache.get, self.name, query, max_results)
            if cached is not None:
                logger.debug(f"{self.name}: cache hit for '{query[:50]}'")
                return cached

        try:
            async for attempt in self.retry_policy.retrying():
                with attempt:
                    if attempt.retry_state.attempt_number > 1:
                        logger.info(f"{self.name}: retry attempt {attempt.retry_state.attempt_number}")
                    records = await self._call_once(query, max_results)
        except SourceError as e:
            logger.warning(f"{self.name} failed for '{query[:50]}': {e}")
            return []
        except Exception as e:
            logger.warning(f"{self.name} raised unexpected {type(e).__name__} for '{query[:50]}': {e}")
            return []

        if self.cache is not None:
            await loop.run_in_executor(None, self.cache.set, self.name, query, max_results, records)
        return records


class QueryRewritingSource(BaseSource):
    """Applies a query rewrite before delegating to the wrapped source."""

    def __init__(self, source: BaseSource, rewrite: QueryRewriter):
        self.source = source
        self.rewrite = rewrite

    @property
    def name(self) -> str:
        return self.source.name

    async def search(self, query: str, max_results: int = 25) -> List[RawRecord]:
        rewritten = self.rewrite(query)
        if rewritten != query:
            logger.debug(f"{self.name}: rewrote '{query[:50]}' -> '{rewritten[:50]}'")
        return await self.source.search(rewritten, max_results)


_FIELD_TAG = re.compile(r"\[[a-z ]+\]", re.IGNORECASE)
_BOOLEAN = re.compile(r"\b(AND|OR|NOT)\b")


def strip_field_tags(query: str) -> str:
    """Remove PubMed field tags ([MeSH Terms], [tiab], [pt]) but keep boolean structure."""
    return re.sub(r"\s+", " ", _FIELD_TAG.sub("", query)).strip()


def to_plain_keywords(query: str) -> str:
    """Reduce a boolean query to space-separated keywords for sources without query syntax."""
    text = _BOOLEAN.sub(" ", strip_field_tags(query))
    text = re.sub(r'[()"]', " ", text)
    words = []
    for word in text.split():
        if word.lower() not in (w.lower() for w in words):
            words.append(word)
    return " ".join(words)
