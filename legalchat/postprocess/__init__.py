from legalchat.postprocess.extractors import (
    extract_citations,
    extract_legal_context,
    extract_related_topics,
    generate_follow_up_suggestions,
)

__all__ = [
    "extract_citations",
    "extract_legal_context",
    "generate_follow_up_suggestions",
    "extract_related_topics",
]
