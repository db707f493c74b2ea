"""HTTP adapter for the external legal knowledge service."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx
import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from legalchat.schemas.chat import KnowledgeSource, RetrievalResult

logger = structlog.get_logger(__name__)


def _parse_hit(hit: Dict[str, Any]) -> Optional[RetrievalResult]:
    document = hit.get("document") or {}
    if not document.get("id"):
        return None
    score = float(hit.get("relevance_score", 0.0))
    source = KnowledgeSource(
        id=str(document["id"]),
        title=document.get("title", ""),
        source_type=document.get("source_type", "unknown"),
        authority=document.get("authority") or None,
        document_url=(document.get("metadata") or {}).get("url") or document.get("document_url"),
        content_text=document.get("content"),
        legal_area=document.get("legal_areas") or [],
        jurisdiction=document.get("jurisdiction"),
    )
    return RetrievalResult(
        source=source,
        relevance_score=min(max(score, 0.0), 1.0),
        matched_content=hit.get("matched_content") or "",
    )


class HttpKnowledgeStore:
    """
    Calls ``POST {base_url}/search`` on the knowledge service.

    Transport errors and 5xx responses are retried here; the chat core applies
    its own timeout around the whole call.
    """

    def __init__(self, base_url: str, token: Optional[str] = None, timeout_seconds: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.headers = {"Content-Type": "application/json"}
        if token:
            self.headers["Authorization"] = f"Bearer {token}"
        self.timeout_seconds = timeout_seconds

    @retry(
        stop=stop_after_attempt(2),
        wait=wait_exponential(multiplier=1, min=1, max=5),
        retry=retry_if_exception_type((httpx.TransportError, httpx.HTTPStatusError)),
        reraise=True,
    )
    async def _post_search(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
            response = await client.post(f"{self.base_url}/search", headers=self.headers, json=payload)
            if response.status_code >= 500:
                response.raise_for_status()
            if response.status_code != 200:
                logger.error("Knowledge service rejected search", status=response.status_code)
                raise ValueError(f"Knowledge service returned {response.status_code}")
            return response.json()

    async def search(
        self,
        query: str,
        user_id: str,
        legal_areas: Optional[List[str]],
        jurisdiction: str,
        relevance_threshold: float,
        max_results: int,
    ) -> List[RetrievalResult]:
        payload = {
            "query": query,
            "user_id": user_id,
            "top_k": max_results,
            "legal_areas": legal_areas or [],
            "jurisdiction": jurisdiction,
            "min_relevance_score": relevance_threshold,
        }
        body = await self._post_search(payload)

        results = []
        for hit in body.get("results", []):
            parsed = _parse_hit(hit)
            if parsed is not None:
                results.append(parsed)
        return results
