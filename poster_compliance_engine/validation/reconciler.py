from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from statistics import mean
from typing import List, Optional

from poster_compliance_engine.validation import rules
from poster_compliance_engine.validation.rules import TextViolationRule
from poster_compliance_engine.validation.schemas import (
    PLACEHOLDER,
    AnalysisTrace,
    Categories,
    ContentScope,
    ContentScopeItem,
    ReconciliationWarning,
    ResultMetadata,
    SchemaValidation,
    ValidationResult,
)

logger = logging.getLogger(__name__)

BASE_CONFIDENCE = 90
MIN_CONFIDENCE = 50
MAX_CONFIDENCE = 100
DEFAULT_ITEM_CONFIDENCE = 85.0


@dataclass(frozen=True)
class Correction:
    code: str
    message: str


@dataclass
class ReconcileOutcome:
    result: ValidationResult
    corrections: List[Correction] = field(default_factory=list)


def reconcile(
    result: ValidationResult,
    *,
    model_name: str,
    now: Optional[datetime] = None,
) -> ReconcileOutcome:
    """Correct a decoded model reply and fill in the derived fields.

    The input is left untouched; passes run on a deep copy in a fixed order
    and every change is reported in ``ReconcileOutcome.corrections``.
    """
    working = result.model_copy(deep=True)
    corrections: List[Correction] = []

    check_schema(working)
    corrections.extend(fix_non_election_logic(working))
    corrections.extend(ensure_analysis_trace(working))
    corrections.extend(check_number_detection(working))
    corrections.extend(apply_text_rules(working))
    working.validation_confidence = calculate_confidence(working)
    corrections.extend(ensure_rejection_reason(working))
    stamp_metadata(working, model_name=model_name, now=now)

    for correction in corrections:
        logger.warning(
            "Reconciliation correction code=%s message=%s",
            correction.code,
            correction.message,
        )
    return ReconcileOutcome(result=working, corrections=corrections)


def validate_schema(result: ValidationResult) -> List[str]:
    errors: List[str] = []
    if result.is_compliant is None:
        errors.append("Missing isCompliant")
    if result.overall_score is None:
        errors.append("Missing overallScore")
    if not result.summary:
        errors.append("Missing summary")

    document_type = result.document_type
    if document_type is None:
        errors.append("Missing documentType")
    else:
        if document_type.is_election_propaganda is None:
            errors.append("Missing documentType.isElectionPropaganda")
        if not document_type.actual_type:
            errors.append("Missing documentType.actualType")

    if result.image_quality is None:
        errors.append("Missing imageQuality")

    categories = result.categories
    if categories is None:
        errors.append("Missing categories")
    else:
        if categories.prohibited_content is None:
            errors.append("Missing prohibitedContent")
        if categories.required_content is None:
            errors.append("Missing requiredContent")
        if categories.content_scope is None:
            errors.append("Missing contentScope")
        if categories.language_ethics is None:
            errors.append("Missing languageEthics")

    if result.extracted_text is None:
        errors.append("Missing extractedText")
    elif result.extracted_text.raw_text is None:
        errors.append("Missing extractedText.rawText")

    if result.analysis_trace is None:
        errors.append("Missing _analysis_trace")
    return errors


def check_schema(result: ValidationResult) -> None:
    # An existing verdict describes the original model reply; keep it.
    if result.schema_validation is not None:
        return
    errors = validate_schema(result)
    if errors:
        logger.error("Schema validation errors: %s", errors)
    result.schema_validation = SchemaValidation(valid=not errors, errors=errors)


def fix_non_election_logic(result: ValidationResult) -> List[Correction]:
    document_type = result.document_type
    if document_type is None or document_type.is_election_propaganda is not False:
        return []
    if result.is_compliant is False and result.overall_score == 0:
        return []

    was_compliant = result.is_compliant is True
    result.is_compliant = False
    result.overall_score = 0
    if result.analysis_trace is not None:
        _append_decision_note(
            result.analysis_trace,
            f"Non-compliant because this is not election propaganda "
            f"({document_type.actual_type}). It cannot be validated as an "
            "election poster.",
        )
    if not result.rejection_reason:
        result.rejection_reason = generate_rejection_reason(result)

    reason = (
        "Non-election material incorrectly marked as compliant"
        if was_compliant
        else "Non-election material carried a non-zero score"
    )
    metadata = _ensure_metadata(result)
    metadata.logic_correction_applied = True
    metadata.correction_reason = reason
    return [Correction("non_election_forced_non_compliant", reason)]


def ensure_analysis_trace(result: ValidationResult) -> List[Correction]:
    if result.analysis_trace is not None:
        return []
    result.analysis_trace = AnalysisTrace.placeholder()
    return [
        Correction(
            "analysis_trace_synthesized",
            "Missing _analysis_trace - model did not show reasoning",
        )
    ]


def check_number_detection(result: ValidationResult) -> List[Correction]:
    categories = result.categories
    if categories is None or categories.prohibited_content is None:
        return []
    item = next(
        (
            entry
            for entry in categories.prohibited_content.items
            if entry.rule == "CANDIDATE_NUMBER"
        ),
        None,
    )
    if item is None or not item.found:
        return []

    details = (item.details or "").lower()
    raw_text = _raw_text(result).lower()
    corrections: List[Correction] = []

    signals = rules.false_positive_signals(details, raw_text)
    if signals:
        warning = ReconciliationWarning(
            type="POSSIBLE_FALSE_POSITIVE",
            rule="CANDIDATE_NUMBER",
            message=(
                "Number detection may be false positive (phone/date/age). "
                "Verify context."
            ),
            details=item.details,
            confidence=60,
        )
        if _add_warning(result, warning):
            corrections.append(
                Correction("possible_false_positive", ",".join(signals))
            )

    if not rules.has_candidate_number_context(raw_text):
        warning = ReconciliationWarning(
            type="MISSING_CONTEXT",
            rule="CANDIDATE_NUMBER",
            message=(
                'Number flagged but missing "رقم المرشح" context. '
                "May be phone/date/age."
            ),
            confidence=70,
        )
        if _add_warning(result, warning):
            corrections.append(
                Correction("missing_candidate_number_context", warning.message)
            )
    return corrections


def apply_text_rules(
    result: ValidationResult,
    text_rules: tuple = rules.TEXT_VIOLATION_RULES,
) -> List[Correction]:
    text = _raw_text(result)
    corrections: List[Correction] = []
    for text_rule in text_rules:
        matched = text_rule.find(text)
        if matched is None:
            continue
        if flag_violation(result, text_rule, matched):
            corrections.append(
                Correction(f"text_rule:{text_rule.name}", text_rule.explanation)
            )
    return corrections


def flag_violation(
    result: ValidationResult, text_rule: TextViolationRule, matched: str
) -> bool:
    """Force a rule violation onto the result; returns whether anything changed."""
    changed = result.is_compliant is not False or result.overall_score != 0
    result.is_compliant = False
    result.overall_score = 0

    message = text_rule.rejection_message
    if not result.rejection_reason:
        result.rejection_reason = message
        changed = True
    elif message not in result.rejection_reason:
        result.rejection_reason = f"{result.rejection_reason} | {message}"
        changed = True

    if result.categories is None:
        result.categories = Categories()
    if result.categories.content_scope is None:
        result.categories.content_scope = ContentScope(status="fail", items=[])
    content_scope = result.categories.content_scope

    exists = any(
        item.rule == text_rule.rule
        and item.violating_objectives[:1] == [matched]
        for item in content_scope.items
    )
    if not exists:
        content_scope.status = "fail"
        content_scope.items.append(
            ContentScopeItem(
                rule=text_rule.rule,
                violated=True,
                confidence=100,
                violating_objectives=[matched],
                explanation=text_rule.explanation,
            )
        )
        changed = True

    if result.analysis_trace is not None:
        changed = (
            _append_decision_note(
                result.analysis_trace,
                f"[System enforced violation: {text_rule.explanation}]",
            )
            or changed
        )
    return changed


def calculate_confidence(result: ValidationResult) -> int:
    confidence = BASE_CONFIDENCE
    trace = result.analysis_trace or AnalysisTrace()

    if not trace.step1_content_extraction or trace.step1_content_extraction == PLACEHOLDER:
        confidence -= 20

    # Non-compliant but the trace lists no violations.
    if not trace.step3_violations_found and result.is_compliant is not True:
        confidence -= 10

    reasoning = result.document_type.reasoning if result.document_type else None
    if reasoning and len(reasoning) > 20:
        confidence += 5

    if average_item_confidence(result) < 70:
        confidence -= 10

    return max(MIN_CONFIDENCE, min(MAX_CONFIDENCE, confidence))


def average_item_confidence(result: ValidationResult) -> float:
    categories = result.categories
    confidences: List[int] = []
    if categories is not None:
        if categories.prohibited_content is not None:
            confidences.extend(
                item.confidence
                for item in categories.prohibited_content.items
                if item.confidence
            )
        if categories.content_scope is not None:
            confidences.extend(
                item.confidence
                for item in categories.content_scope.items
                if item.confidence
            )
    if not confidences:
        return DEFAULT_ITEM_CONFIDENCE
    return mean(confidences)


def ensure_rejection_reason(result: ValidationResult) -> List[Correction]:
    if result.is_compliant is True or result.rejection_reason:
        return []
    result.rejection_reason = generate_rejection_reason(result)
    return [Correction("rejection_reason_synthesized", result.rejection_reason)]


def generate_rejection_reason(result: ValidationResult) -> str:
    document_type = result.document_type
    if document_type is not None and document_type.is_election_propaganda is False:
        return rules.NON_ELECTION_REASONS.get(
            document_type.actual_type or "", rules.NOT_ELECTION_REASON
        )

    image_quality = result.image_quality
    if (
        image_quality is not None
        and image_quality.is_acceptable is False
        and "blurry" in image_quality.issues
    ):
        return rules.BLURRY_PHOTO_REASON

    categories = result.categories or Categories()

    prohibited = categories.prohibited_content
    found = {}
    for item in prohibited.items if prohibited else []:
        if item.found:
            found.setdefault(item.rule, item)
    if "CANDIDATE_NUMBER" in found and "ELECTION_LOGO" in found:
        return rules.NUMBER_AND_LOGO_REASON
    for rule, reason in rules.PROHIBITED_CONTENT_REASONS:
        if rule not in found:
            continue
        if rule == "HISTORICAL_SYMBOLS":
            return rules.historical_symbol_reason(found[rule].details)
        return reason

    scope = categories.content_scope
    violated = {item.rule for item in (scope.items if scope else []) if item.violated}
    for rule, reason in rules.CONTENT_SCOPE_REASONS:
        if rule in violated:
            return reason

    required = categories.required_content
    missing = {
        item.element for item in (required.items if required else []) if not item.present
    }
    if missing & {"CANDIDATE_PHOTO", "CANDIDATE_NAME"}:
        return rules.MISSING_REQUIRED_CONTENT_REASON

    return rules.DEFAULT_REJECTION_REASON


def stamp_metadata(
    result: ValidationResult, *, model_name: str, now: Optional[datetime] = None
) -> None:
    metadata = _ensure_metadata(result)
    if metadata.timestamp is None:
        metadata.timestamp = (now or datetime.now(timezone.utc)).isoformat()
    metadata.model_used = model_name
    step1 = result.analysis_trace.step1_content_extraction if result.analysis_trace else None
    metadata.has_analysis_trace = bool(step1) and step1 != PLACEHOLDER
    metadata.schema_valid = (
        result.schema_validation.valid if result.schema_validation else None
    )


def _raw_text(result: ValidationResult) -> str:
    if result.extracted_text is None:
        return ""
    return result.extracted_text.raw_text or ""


def _ensure_metadata(result: ValidationResult) -> ResultMetadata:
    if result.metadata is None:
        result.metadata = ResultMetadata()
    return result.metadata


def _add_warning(result: ValidationResult, warning: ReconciliationWarning) -> bool:
    if any(
        existing.type == warning.type and existing.rule == warning.rule
        for existing in result.warnings
    ):
        return False
    result.warnings.append(warning)
    return True


def _append_decision_note(trace: AnalysisTrace, note: str) -> bool:
    current = trace.step4_decision_logic or ""
    if note in current:
        return False
    trace.step4_decision_logic = f"{current} {note}".strip()
    return True
