"""
Prompt templates for the legal chat assistant.

Everything here is pure: identical inputs always give an identical prompt, with no
I/O and no clock access, so prompts can be asserted on directly in tests.

Architecture:
- System prompt with jurisdiction framework and optional area specialization
- User prompt augmented with retrieved sources above the prompt relevance bar
- Prior turns packaged separately as chat history for the generation call
"""

from typing import Any, Dict, List, Optional

from legalchat.schemas.chat import Message, RetrievalResult

PROMPT_RELEVANCE_FLOOR = 0.7

JURISDICTION_ADJECTIVES = {
    "Kenya": "Kenyan",
}

# ==============================================================================
# SYSTEM PROMPT
# ==============================================================================

SYSTEM_PROMPT_TEMPLATE = """You are a highly knowledgeable legal AI assistant specializing in {adjective} law. You provide accurate, helpful, and legally sound information while being mindful of ethical considerations.

IMPORTANT GUIDELINES:
1. Always specify when you're providing general information vs. specific legal advice
2. Encourage users to consult with qualified lawyers for complex matters
3. Cite relevant {adjective} laws, regulations, and cases when applicable
4. Be clear about limitations and uncertainties
5. Use clear, professional language accessible to non-lawyers

{upper} LEGAL FRAMEWORK:
- Constitution of {jurisdiction}
- Acts of Parliament
- Legal Notice and Regulations
- Case law from {adjective} courts
- Common law principles applicable in {jurisdiction}"""

SPECIALIZATION_TEMPLATE = "\n\nSPECIALIZATION: This conversation focuses on {legal_area}."

# ==============================================================================
# USER PROMPT
# ==============================================================================

SOURCE_BLOCK_TEMPLATE = """Source: {title} ({source_type})
Content: {content}
Authority: {authority}
Relevance: {relevance:.2f}"""

GROUNDED_PROMPT_TEMPLATE = """RELEVANT LEGAL CONTEXT FROM {upper} LAW:
{sources}

USER QUESTION: {question}

Please provide a comprehensive answer based on the above {adjective} legal sources and your knowledge. Always cite the specific laws, cases, or regulations when applicable."""

PREVIOUS_CONTEXT_TEMPLATE = """PREVIOUS CONVERSATION CONTEXT:
{summary}

{prompt}"""


def jurisdiction_adjective(jurisdiction: str) -> str:
    return JURISDICTION_ADJECTIVES.get(jurisdiction, jurisdiction)


def build_system_prompt(jurisdiction: str = "Kenya", domain_hint: Optional[str] = None) -> str:
    """System prompt for the generation call, specialized when a legal area is known."""
    adjective = jurisdiction_adjective(jurisdiction)
    prompt = SYSTEM_PROMPT_TEMPLATE.format(
        adjective=adjective,
        upper=adjective.upper(),
        jurisdiction=jurisdiction,
    )
    if domain_hint:
        prompt += SPECIALIZATION_TEMPLATE.format(legal_area=domain_hint)
    return prompt


def format_source_block(result: RetrievalResult) -> str:
    return SOURCE_BLOCK_TEMPLATE.format(
        title=result.source.title,
        source_type=result.source.source_type,
        content=result.matched_content,
        authority=result.source.authority or "Not specified",
        relevance=result.relevance_score,
    )


def compose_prompt(
    user_message: str,
    retrieval_results: List[RetrievalResult],
    prior_turns: List[Message],
    prior_context_summary: Optional[str] = None,
    jurisdiction: str = "Kenya",
    relevance_floor: float = PROMPT_RELEVANCE_FLOOR,
) -> str:
    """
    Build the user-facing prompt text for one turn.

    With no retrieval results the prompt is the raw message. Otherwise sources
    scoring strictly above ``relevance_floor`` are rendered into a grounding block
    (the header is kept even if none qualify). A prior-context summary, when
    given, is prepended.

    ``prior_turns`` never changes the prompt text; they travel as chat history
    via ``build_generation_context``.
    """
    prompt = user_message

    if retrieval_results:
        adjective = jurisdiction_adjective(jurisdiction)
        sources = "\n\n".join(
            format_source_block(r) for r in retrieval_results if r.relevance_score > relevance_floor
        )
        prompt = GROUNDED_PROMPT_TEMPLATE.format(
            upper=adjective.upper(),
            adjective=adjective,
            sources=sources,
            question=user_message,
        )

    if prior_context_summary:
        prompt = PREVIOUS_CONTEXT_TEMPLATE.format(summary=prior_context_summary, prompt=prompt)

    return prompt


def build_generation_context(
    prior_turns: List[Message],
    retrieval_results: List[RetrievalResult],
    domain_hint: Optional[str] = None,
) -> Dict[str, Any]:
    """Side-channel context for the generation service (history, sources, area)."""
    return {
        "legal_area": domain_hint,
        "conversation_history": [{"role": m.role, "content": m.content} for m in prior_turns],
        "knowledge_sources": [
            {"source_id": r.source.id, "title": r.source.title, "relevance": r.relevance_score}
            for r in retrieval_results
        ],
    }
