"""Keyword and pattern tables for response post-processing.

Extending coverage (another court, another act, another topic) means editing a
table here, not the extraction code.
"""

import re

PATTERN_CITATION_RELEVANCE = 0.9
SOURCE_CITATION_THRESHOLD = 0.8
MAX_FOLLOW_UPS = 4
MAX_RELATED_TOPICS = 3

CITATION_PATTERNS = [
    # Statutory and clause references, e.g. "Section 45(a)"
    re.compile(r"(?:Section|Article|Clause)\s+\d+(?:\([a-z]\))?", re.IGNORECASE),
    # Named courts
    re.compile(r"\b(?:High Court|Supreme Court|Court of Appeal)\b", re.IGNORECASE),
    # Foundational instruments
    re.compile(r"\b(?:Constitution of Kenya|Employment Act|Companies Act)\b", re.IGNORECASE),
]

LEGAL_AREAS = [
    "contract law",
    "employment law",
    "corporate law",
    "real estate law",
    "intellectual property",
    "family law",
    "criminal law",
    "constitutional law",
    "tax law",
    "immigration law",
]

COMPLEXITY_INDICATORS = [
    "litigation",
    "precedent",
    "appellate",
    "constitutional",
    "judicial review",
    "statutory interpretation",
    "criminal procedure",
]
COMPLEX_THRESHOLD = 3
MEDIUM_THRESHOLD = 1

LAWYER_REFERRAL_KEYWORDS = [
    "lawsuit",
    "litigation",
    "criminal charges",
    "arrest",
    "bankruptcy",
    "divorce",
    "custody",
    "estate",
    "serious injury",
    "malpractice",
    "discrimination",
]

# Whole words only; "will" counts only as a testamentary document.
LAWYER_REFERRAL_PATTERN = re.compile(
    r"\b(?:(?:"
    + "|".join(re.escape(keyword) for keyword in LAWYER_REFERRAL_KEYWORDS)
    + r")s?|(?:last|a|my|your|his|her|their|the deceased's) will|wills)\b",
    re.IGNORECASE,
)

# (keywords matched in the answer, suggestions added) in priority order
CONTENT_FOLLOW_UPS = [
    (
        ("contract",),
        [
            "How do I draft a contract for this situation?",
            "What are the key clauses I should include?",
        ],
    ),
    (
        ("dispute", "court"),
        [
            "What are my options for resolving this dispute?",
            "When should I consider going to court?",
        ],
    ),
    (
        ("employment",),
        [
            "What are my rights as an employee in Kenya?",
            "How do I file a complaint with the labor office?",
        ],
    ),
]

DOMAIN_FOLLOW_UPS = {
    "real_estate_law": [
        "What documents do I need for property transfer?",
        "How do I verify property ownership in Kenya?",
    ],
}

GENERIC_FOLLOW_UPS = [
    "Can you explain this in simpler terms?",
    "What are the potential risks I should consider?",
    "Do I need to consult with a lawyer about this?",
]

# Declaration order decides which topics survive the cap.
TOPIC_KEYWORDS = {
    "Contract Formation": ["contract", "agreement", "offer", "acceptance"],
    "Employment Rights": ["employment", "worker", "salary", "dismissal"],
    "Property Law": ["property", "land", "ownership", "transfer"],
    "Corporate Compliance": ["company", "directors", "shareholders", "compliance"],
    "Dispute Resolution": ["dispute", "mediation", "arbitration", "court"],
}
