"""Pure text analysis over generated answers.

All functions are deterministic functions of their arguments; nothing here does
I/O. Keyword matching is case-insensitive.
"""

from typing import List, Optional

from legalchat.postprocess import legal_patterns as patterns
from legalchat.schemas.chat import Citation, LegalContext, RetrievalResult


def _contains_any(text: str, keywords) -> bool:
    return any(k in text for k in keywords)


def extract_citations(
    content: str,
    sources_used: List[RetrievalResult],
    source_threshold: float = patterns.SOURCE_CITATION_THRESHOLD,
) -> List[Citation]:
    """
    Citations found in the answer plus the strongest sources behind it.

    Pattern matches come first at a fixed relevance, deduplicated on exact text.
    Then each source scoring above ``source_threshold`` contributes its title at its
    own score, unless that exact text is already cited.
    """
    citations: List[Citation] = []
    seen = set()

    for pattern in patterns.CITATION_PATTERNS:
        for match in pattern.finditer(content):
            text = match.group(0)
            if text in seen:
                continue
            seen.add(text)
            citations.append(Citation(citation=text, relevance=patterns.PATTERN_CITATION_RELEVANCE))

    for result in sources_used:
        if result.relevance_score <= source_threshold:
            continue
        title = result.source.title
        if title in seen:
            continue
        seen.add(title)
        citations.append(
            Citation(citation=title, relevance=result.relevance_score, url=result.source.document_url)
        )

    return citations


def assess_complexity(content: str) -> str:
    lowered = content.lower()
    hits = sum(1 for indicator in patterns.COMPLEXITY_INDICATORS if indicator in lowered)
    if hits >= patterns.COMPLEX_THRESHOLD:
        return "complex"
    if hits >= patterns.MEDIUM_THRESHOLD:
        return "medium"
    return "simple"


def should_recommend_lawyer(content: str) -> bool:
    return patterns.LAWYER_REFERRAL_PATTERN.search(content) is not None


def extract_legal_context(content: str, domain_hint: Optional[str] = None) -> LegalContext:
    lowered = content.lower()
    return LegalContext(
        primary_area=domain_hint,
        mentioned_areas=[area for area in patterns.LEGAL_AREAS if area in lowered],
        complexity_level=assess_complexity(content),
        requires_lawyer=should_recommend_lawyer(content),
    )


def generate_follow_up_suggestions(content: str, domain_hint: Optional[str] = None) -> List[str]:
    """At most four suggestions; content-driven ones first, generics always appended."""
    lowered = content.lower()
    suggestions: List[str] = []

    for keywords, follow_ups in patterns.CONTENT_FOLLOW_UPS:
        if _contains_any(lowered, keywords):
            suggestions.extend(follow_ups)

    if domain_hint in patterns.DOMAIN_FOLLOW_UPS:
        suggestions.extend(patterns.DOMAIN_FOLLOW_UPS[domain_hint])

    suggestions.extend(patterns.GENERIC_FOLLOW_UPS)
    return suggestions[: patterns.MAX_FOLLOW_UPS]


def extract_related_topics(content: str) -> List[str]:
    lowered = content.lower()
    topics = [
        topic
        for topic, keywords in patterns.TOPIC_KEYWORDS.items()
        if _contains_any(lowered, keywords)
    ]
    return topics[: patterns.MAX_RELATED_TOPICS]
