"""Knowledge retrieval for chat turns.

Wraps the external knowledge store with the core's filtering contract: results at
or under the relevance threshold are dropped entirely, the rest are ordered by
descending relevance and capped at ``max_results``.
"""

from __future__ import annotations

import asyncio
import time
from typing import List, Optional

import structlog

from legalchat.errors import RetrievalFailure
from legalchat.ports import KnowledgeStore
from legalchat.schemas.chat import RetrievalResult

logger = structlog.get_logger(__name__)


def filter_and_rank(
    results: List[RetrievalResult], relevance_threshold: float, max_results: int
) -> List[RetrievalResult]:
    """Drop results with score <= threshold, sort descending (stable), truncate."""
    kept = [r for r in results if r.relevance_score > relevance_threshold]
    kept.sort(key=lambda r: r.relevance_score, reverse=True)
    return kept[: max(0, max_results)]


class KnowledgeRetriever:
    """Similarity search against the legal knowledge store."""

    def __init__(
        self,
        store: KnowledgeStore,
        jurisdiction: str = "Kenya",
        relevance_threshold: float = 0.7,
        max_results: int = 5,
        timeout_seconds: float = 8.0,
    ):
        self.store = store
        self.jurisdiction = jurisdiction
        self.relevance_threshold = relevance_threshold
        self.max_results = max_results
        self.timeout_seconds = timeout_seconds

    async def search(
        self,
        query: str,
        user_id: str,
        domain_filter: Optional[str] = None,
        jurisdiction: Optional[str] = None,
        relevance_threshold: Optional[float] = None,
        max_results: Optional[int] = None,
    ) -> List[RetrievalResult]:
        """
        Search the knowledge store for passages relevant to ``query``.

        Args:
            query: The user's question.
            user_id: Caller, forwarded for store-side auditing.
            domain_filter: Optional legal area (e.g. "employment_law").
            jurisdiction: Defaults to the retriever's jurisdiction.
            relevance_threshold: Exclusive lower bound on relevance.
            max_results: Upper bound on returned results after filtering.

        Raises:
            RetrievalFailure: The store errored or exceeded the timeout.
        """
        jurisdiction = jurisdiction or self.jurisdiction
        threshold = self.relevance_threshold if relevance_threshold is None else relevance_threshold
        limit = self.max_results if max_results is None else max_results
        legal_areas = [domain_filter] if domain_filter else None

        start_time = time.time()
        try:
            raw = await asyncio.wait_for(
                self.store.search(
                    query=query,
                    user_id=user_id,
                    legal_areas=legal_areas,
                    jurisdiction=jurisdiction,
                    relevance_threshold=threshold,
                    max_results=limit,
                ),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            logger.warning("Knowledge search timed out", timeout_s=self.timeout_seconds)
            raise RetrievalFailure(
                "Knowledge search timed out",
                details={"timeout_s": self.timeout_seconds},
                timed_out=True,
            ) from e
        except Exception as e:
            logger.warning("Knowledge search failed", error=str(e), error_type=type(e).__name__)
            raise RetrievalFailure("Knowledge search failed", details={"error": str(e)}) from e

        results = filter_and_rank(raw, threshold, limit)
        logger.info(
            "Knowledge search completed",
            raw_count=len(raw),
            results_count=len(results),
            top_score=results[0].relevance_score if results else 0,
            legal_areas=legal_areas,
            duration_ms=round((time.time() - start_time) * 1000, 2),
        )
        return results
