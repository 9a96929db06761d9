from __future__ import annotations

from typing import Annotated, Any, List, Literal, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field
from pydantic.alias_generators import to_camel

PLACEHOLDER = "Not provided"

DocumentKind = Literal[
    "election_poster",
    "training_ad",
    "press_interview",
    "proposal",
    "social_post",
    "news_article",
    "other",
]
CategoryStatus = Literal["pass", "fail"]
ProhibitedRule = Literal[
    "ELECTION_LOGO",
    "CANDIDATE_NUMBER",
    "STATE_EMBLEM",
    "NATIONAL_FLAG",
    "HISTORICAL_SYMBOLS",
    "PUBLIC_FIGURES",
    "TRIBAL_SYMBOLS",
    "LOGOS_PRIVATE",
]
RequiredElement = Literal["CANDIDATE_PHOTO", "CANDIDATE_NAME"]
ContentScopeRule = Literal[
    "OBJECTIVES_OUTSIDE_POWERS",
    "PREVIOUS_TERM_EXPLOITATION",
    "ELECTION_PROMISES",
    "DEVIATION_FROM_SCOPE",
]
LanguageEthicsRule = Literal["ARABIC_ONLY", "PUBLIC_ORDER", "NO_DEFAMATION"]
WarningType = Literal["POSSIBLE_FALSE_POSITIVE", "MISSING_CONTEXT"]


def _round_number(value: Any) -> Any:
    # Models often answer 87.5 where an integer percentage is expected.
    if isinstance(value, float):
        return round(value)
    return value


def _false_if_none(value: Any) -> Any:
    return False if value is None else value


Percent = Annotated[Optional[int], BeforeValidator(_round_number)]
Flag = Annotated[bool, BeforeValidator(_false_if_none)]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DocumentType(CamelModel):
    is_election_propaganda: Optional[bool] = None
    actual_type: Optional[DocumentKind] = None
    confidence: Percent = None
    reasoning: Optional[str] = None


class ImageQuality(CamelModel):
    is_acceptable: Optional[bool] = None
    issues: List[str] = Field(default_factory=list)


class ProhibitedContentItem(CamelModel):
    rule: ProhibitedRule
    found: Flag = False
    confidence: Percent = None
    details: Optional[str] = None
    location: Optional[str] = None


class RequiredContentItem(CamelModel):
    element: RequiredElement
    present: Flag = False
    quality: Optional[Literal["good", "poor", "missing"]] = None


class ContentScopeItem(CamelModel):
    rule: ContentScopeRule
    violated: Flag = False
    confidence: Percent = None
    violating_objectives: List[str] = Field(default_factory=list)
    explanation: Optional[str] = None


class LanguageEthicsItem(CamelModel):
    rule: LanguageEthicsRule
    passed: Optional[bool] = None
    details: Optional[str] = None


class ProhibitedContent(CamelModel):
    status: Optional[CategoryStatus] = None
    items: List[ProhibitedContentItem] = Field(default_factory=list)


class RequiredContent(CamelModel):
    status: Optional[CategoryStatus] = None
    items: List[RequiredContentItem] = Field(default_factory=list)


class ContentScope(CamelModel):
    status: Optional[CategoryStatus] = None
    items: List[ContentScopeItem] = Field(default_factory=list)


class LanguageEthics(CamelModel):
    status: Optional[CategoryStatus] = None
    items: List[LanguageEthicsItem] = Field(default_factory=list)


class Categories(CamelModel):
    prohibited_content: Optional[ProhibitedContent] = None
    required_content: Optional[RequiredContent] = None
    content_scope: Optional[ContentScope] = None
    language_ethics: Optional[LanguageEthics] = None


class ExtractedText(CamelModel):
    raw_text: Optional[str] = None
    candidate_name: Optional[str] = None
    candidate_number: Optional[str] = None
    phone_number: Optional[str] = None
    objectives: List[str] = Field(default_factory=list)
    contains_non_arabic: Optional[bool] = None


class AnalysisTrace(BaseModel):
    """The model's own reasoning log, keyed by workflow step."""

    step1_content_extraction: Optional[str] = None
    step2_document_type: Optional[str] = None
    step3_violations_found: List[str] = Field(default_factory=list)
    step4_decision_logic: Optional[str] = None

    @classmethod
    def placeholder(cls) -> "AnalysisTrace":
        return cls(
            step1_content_extraction=PLACEHOLDER,
            step2_document_type=PLACEHOLDER,
            step3_violations_found=[],
            step4_decision_logic=PLACEHOLDER,
        )


class ReconciliationWarning(CamelModel):
    type: WarningType
    rule: ProhibitedRule
    message: str
    details: Optional[str] = None
    confidence: int


class ResultMetadata(CamelModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, protected_namespaces=()
    )

    timestamp: Optional[str] = None
    model_used: Optional[str] = None
    has_analysis_trace: Optional[bool] = None
    schema_valid: Optional[bool] = None
    logic_correction_applied: Optional[bool] = None
    correction_reason: Optional[str] = None


class SchemaValidation(CamelModel):
    valid: bool
    errors: List[str] = Field(default_factory=list)


class ValidationResult(CamelModel):
    analysis_trace: Optional[AnalysisTrace] = Field(default=None, alias="_analysis_trace")
    is_compliant: Optional[bool] = None
    overall_score: Percent = Field(default=None, ge=0, le=100)
    summary: Optional[str] = None
    rejection_reason: Optional[str] = None
    document_type: Optional[DocumentType] = None
    image_quality: Optional[ImageQuality] = None
    categories: Optional[Categories] = None
    extracted_text: Optional[ExtractedText] = None
    warnings: List[ReconciliationWarning] = Field(default_factory=list)
    validation_confidence: Percent = None
    metadata: Optional[ResultMetadata] = None
    schema_validation: Optional[SchemaValidation] = None
    error: Optional[str] = None

    def to_response(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")
