"""Deterministic text rules layered under the model's own judgement.

Every rule is data: adding a phrase that must always fail a poster means adding
a ``TextViolationRule`` to ``TEXT_VIOLATION_RULES``, not a new branch in the
reconciler.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Pattern, Tuple


@dataclass(frozen=True)
class TextViolationRule:
    name: str
    pattern: Pattern[str]
    rule: str
    explanation: str
    rejection_message: str

    def find(self, text: str) -> Optional[str]:
        match = self.pattern.search(text)
        return match.group(0) if match else None


TEXT_VIOLATION_RULES: Tuple[TextViolationRule, ...] = (
    TextViolationRule(
        name="job_seeker_file",
        pattern=re.compile(r"فتح\s*ملف\s*(?:ال)?باحثين|ملف\s*الباحثين"),
        rule="OBJECTIVES_OUTSIDE_POWERS",
        explanation=(
            "Prohibited content: 'Job Seeker File' (ملف الباحثين) is an "
            "executive authority matter."
        ),
        rejection_message=(
            "Prohibited content: Mentioning 'Job Seeker File' (ملف الباحثين) "
            "is strictly prohibited."
        ),
    ),
    TextViolationRule(
        name="guaranteed_services",
        pattern=re.compile(r"أن\s*تكون.*مكتملة|ضمان.*خدمات|ضمان.*حصول"),
        rule="OBJECTIVES_OUTSIDE_POWERS",
        explanation=(
            "Prohibited content: Guaranteeing services or completeness is "
            "outside Shura powers."
        ),
        rejection_message=(
            "Prohibited content: Candidates cannot guarantee service "
            "completion or outcomes."
        ),
    ),
    TextViolationRule(
        name="seek_to_obtain",
        pattern=re.compile(r"سأسعى\s*(?:على|إلى|لـ?)\s*(?:ال|ل)?حصول"),
        rule="ELECTION_PROMISES",
        explanation=(
            "Prohibited Grammar: 'Seeking to obtain' (سأسعى للحصول) implies "
            "executive benefit delivery."
        ),
        rejection_message=(
            "Prohibited language: 'Seeking to obtain' (سأسعى للحصول) is a "
            "prohibited form of promise."
        ),
    ),
)

# Contexts in which a number is almost never a ballot ranking number.
NUMBER_FALSE_POSITIVE_PATTERNS: Dict[str, Pattern[str]] = {
    "phone": re.compile(r"\d{8,}"),
    "date": re.compile(r"\d{1,2}[/\-.]\d{1,2}[/\-.]\d{2,4}"),
    "age": re.compile(r"سنة.*\d+|\d+.*سنة"),
    "contact": re.compile(r"للتواصل.*\d+|\d+.*للتواصل"),
    "vision": re.compile(r"رؤية.*\d{4}|\d{4}.*رؤية"),
}

CANDIDATE_NUMBER_CONTEXT = re.compile(r"رقم\s*المرشح|المرشح\s*رقم")


def false_positive_signals(*texts: str) -> List[str]:
    """Names of the false-positive patterns matching any of ``texts``."""
    return [
        name
        for name, pattern in NUMBER_FALSE_POSITIVE_PATTERNS.items()
        if any(pattern.search(text) for text in texts if text)
    ]


def has_candidate_number_context(text: str) -> bool:
    return bool(CANDIDATE_NUMBER_CONTEXT.search(text or ""))


NON_ELECTION_REASONS: Dict[str, str] = {
    "training_ad": (
        "The request is an advertisement for a training course and not an "
        "election advertisement for the candidate"
    ),
    "press_interview": (
        "The attached document is a press interview and not election propaganda"
    ),
    "proposal": (
        "The publication has nothing to do with election propaganda. Rather, "
        "it is a proposal to solve a problem"
    ),
    "social_post": "The post has nothing to do with election propaganda",
}
NOT_ELECTION_REASON = "This is not election propaganda"

BLURRY_PHOTO_REASON = "Photo is blurry"

NUMBER_AND_LOGO_REASON = (
    "Removal of the candidate's number and election logo is required"
)
HISTORICAL_SYMBOL_REASONS: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (
        ("fort", "castle"),
        "Please remove the fort/castle from the image background as it is a "
        "historical symbol",
    ),
    (
        ("gate",),
        "Please remove the gate from the image background as it is a "
        "historical symbol",
    ),
)
HISTORICAL_SYMBOL_REASON = (
    "Please remove the historical symbol from the image background"
)

# Evaluated in order after the combined number/logo check.
PROHIBITED_CONTENT_REASONS: Tuple[Tuple[str, str], ...] = (
    ("CANDIDATE_NUMBER", "Please remove the candidate number"),
    ("ELECTION_LOGO", "Please remove the election logo"),
    ("HISTORICAL_SYMBOLS", HISTORICAL_SYMBOL_REASON),
    ("PUBLIC_FIGURES", "The poster contains public figures"),
    ("STATE_EMBLEM", "Please remove the state emblem"),
    ("NATIONAL_FLAG", "Please remove the national flag"),
)

CONTENT_SCOPE_REASONS: Tuple[Tuple[str, str], ...] = (
    (
        "OBJECTIVES_OUTSIDE_POWERS",
        "Most of the objectives mentioned fall outside the legally defined "
        "powers of the Shura Council members",
    ),
    ("ELECTION_PROMISES", "The content of the objective involves an election promise"),
    (
        "DEVIATION_FROM_SCOPE",
        "The poster deviated from the content of the election campaign, which "
        "includes the candidate's picture, biography, electoral vision, goals, "
        "or roles",
    ),
    ("PREVIOUS_TERM_EXPLOITATION", "Cannot exploit the previous term achievements"),
)

MISSING_REQUIRED_CONTENT_REASON = (
    "Election campaigning is limited to the following: candidate photo, name, "
    "CV, and vision"
)
DEFAULT_REJECTION_REASON = "Poster does not comply with election campaign regulations"


def historical_symbol_reason(details: Optional[str]) -> str:
    detail = (details or "").lower()
    for keywords, reason in HISTORICAL_SYMBOL_REASONS:
        if any(keyword in detail for keyword in keywords):
            return reason
    return HISTORICAL_SYMBOL_REASON
