import copy
import re
from datetime import datetime, timezone
from itertools import product

import pytest

from poster_compliance_engine.validation import rules
from poster_compliance_engine.validation.reconciler import (
    apply_text_rules,
    calculate_confidence,
    generate_rejection_reason,
    reconcile,
    validate_schema,
)
from poster_compliance_engine.validation.rules import TextViolationRule
from poster_compliance_engine.validation.schemas import PLACEHOLDER, ValidationResult

NOW = datetime(2025, 10, 1, 8, 30, tzinfo=timezone.utc)
MODEL = "qwen3-vl-plus"

BASE_REPLY = {
    "_analysis_trace": {
        "step1_content_extraction": "Found: candidate photo, name and two objectives",
        "step2_document_type": "This IS election propaganda",
        "step3_violations_found": [],
        "step4_decision_logic": "Compliant - no violations",
    },
    "isCompliant": True,
    "overallScore": 95,
    "summary": "The poster follows the campaign rules.",
    "rejectionReason": None,
    "documentType": {
        "isElectionPropaganda": True,
        "actualType": "election_poster",
        "confidence": 95,
        "reasoning": "Candidate photo with name and campaign objectives",
    },
    "imageQuality": {"isAcceptable": True, "issues": []},
    "categories": {
        "prohibitedContent": {
            "status": "pass",
            "items": [
                {
                    "rule": "CANDIDATE_NUMBER",
                    "found": False,
                    "confidence": 90,
                    "details": "No ranking number",
                    "location": "none",
                }
            ],
        },
        "requiredContent": {
            "status": "pass",
            "items": [
                {"element": "CANDIDATE_PHOTO", "present": True, "quality": "good"},
                {"element": "CANDIDATE_NAME", "present": True, "quality": "good"},
            ],
        },
        "contentScope": {"status": "pass", "items": []},
        "languageEthics": {
            "status": "pass",
            "items": [{"rule": "ARABIC_ONLY", "passed": True, "details": ""}],
        },
    },
    "extractedText": {
        "rawText": "فيصل بن علي مرشحكم لعضوية مجلس الشورى",
        "candidateName": "فيصل بن علي",
        "candidateNumber": None,
        "phoneNumber": None,
        "objectives": [],
        "containsNonArabic": False,
    },
}


def _reply(**overrides) -> dict:
    reply = copy.deepcopy(BASE_REPLY)
    reply.update(overrides)
    return reply


def _decode(reply: dict) -> ValidationResult:
    return ValidationResult.model_validate(reply)


def _reconcile(reply: dict):
    return reconcile(_decode(reply), model_name=MODEL, now=NOW)


def _with_number_finding(reply: dict, details: str) -> dict:
    reply["categories"]["prohibitedContent"]["items"][0].update(
        {"found": True, "details": details, "location": "center"}
    )
    return reply


def test_complete_compliant_reply_is_left_alone():
    outcome = _reconcile(_reply())
    result = outcome.result

    assert outcome.corrections == []
    assert result.is_compliant is True
    assert result.overall_score == 95
    assert result.rejection_reason is None
    assert result.warnings == []
    assert result.schema_validation.valid is True
    assert result.schema_validation.errors == []
    assert result.validation_confidence == 95
    assert result.metadata.timestamp == NOW.isoformat()
    assert result.metadata.model_used == MODEL
    assert result.metadata.has_analysis_trace is True
    assert result.metadata.schema_valid is True


def test_training_ad_marked_compliant_is_corrected():
    reply = _reply(
        documentType={
            "isElectionPropaganda": False,
            "actualType": "training_ad",
            "confidence": 90,
            "reasoning": "Advertisement for a training course",
        }
    )

    outcome = _reconcile(reply)
    result = outcome.result

    assert result.is_compliant is False
    assert result.overall_score == 0
    assert result.rejection_reason == (
        "The request is an advertisement for a training course and not an "
        "election advertisement for the candidate"
    )
    assert result.metadata.logic_correction_applied is True
    assert "not election propaganda (training_ad)" in (
        result.analysis_trace.step4_decision_logic
    )
    assert [c.code for c in outcome.corrections] == ["non_election_forced_non_compliant"]


def test_non_election_with_leftover_score_is_zeroed():
    reply = _reply(
        isCompliant=False,
        overallScore=40,
        documentType={"isElectionPropaganda": False, "actualType": "news_article"},
    )

    result = _reconcile(reply).result

    assert result.is_compliant is False
    assert result.overall_score == 0
    assert result.rejection_reason == rules.NOT_ELECTION_REASON


def test_reconcile_does_not_mutate_input():
    decoded = _decode(
        _reply(documentType={"isElectionPropaganda": False, "actualType": "proposal"})
    )

    reconcile(decoded, model_name=MODEL, now=NOW)

    assert decoded.is_compliant is True
    assert decoded.overall_score == 95
    assert decoded.metadata is None


def test_missing_trace_is_synthesized_with_placeholders():
    reply = _reply()
    del reply["_analysis_trace"]

    outcome = _reconcile(reply)
    result = outcome.result

    assert result.analysis_trace.step1_content_extraction == PLACEHOLDER
    assert result.analysis_trace.step2_document_type == PLACEHOLDER
    assert result.analysis_trace.step3_violations_found == []
    assert result.analysis_trace.step4_decision_logic == PLACEHOLDER
    assert "Missing _analysis_trace" in result.schema_validation.errors
    assert result.metadata.has_analysis_trace is False
    assert result.metadata.schema_valid is False
    # 90 - 20 (no extraction step) + 5 (clear document reasoning)
    assert result.validation_confidence == 75


def test_sparse_reply_reports_schema_errors():
    result = _reconcile({"isCompliant": False}).result

    errors = result.schema_validation.errors
    assert result.schema_validation.valid is False
    for expected in (
        "Missing overallScore",
        "Missing summary",
        "Missing documentType",
        "Missing imageQuality",
        "Missing categories",
        "Missing extractedText",
        "Missing _analysis_trace",
    ):
        assert expected in errors
    assert "Missing isCompliant" not in errors
    assert result.rejection_reason == rules.DEFAULT_REJECTION_REASON


def test_validate_schema_reports_nested_fields():
    reply = _reply(documentType={"confidence": 50})
    del reply["categories"]["languageEthics"]
    reply["extractedText"] = {"objectives": []}

    errors = validate_schema(_decode(reply))

    assert errors == [
        "Missing documentType.isElectionPropaganda",
        "Missing documentType.actualType",
        "Missing languageEthics",
        "Missing extractedText.rawText",
    ]


def test_phone_number_flagged_as_candidate_number_gets_both_warnings():
    reply = _with_number_finding(
        _reply(isCompliant=False, overallScore=40),
        details="Number 99887766 shown at the bottom",
    )
    reply["extractedText"]["rawText"] = "فيصل بن علي للتواصل 99887766"

    result = _reconcile(reply).result

    assert [w.type for w in result.warnings] == [
        "POSSIBLE_FALSE_POSITIVE",
        "MISSING_CONTEXT",
    ]
    assert [w.confidence for w in result.warnings] == [60, 70]
    assert all(w.rule == "CANDIDATE_NUMBER" for w in result.warnings)
    assert result.warnings[0].details == "Number 99887766 shown at the bottom"
    # Advisory only: the finding itself is kept.
    assert result.categories.prohibited_content.items[0].found is True


def test_ranking_number_in_context_keeps_violation_without_warnings():
    reply = _with_number_finding(
        _reply(isCompliant=False, overallScore=30),
        details="Election number 18 displayed as 'رقم المرشح 18'",
    )
    reply["extractedText"]["rawText"] = "مرشحكم لعضوية مجلس الشورى رقم المرشح 18"

    result = _reconcile(reply).result

    assert result.warnings == []
    assert result.categories.prohibited_content.items[0].found is True
    assert result.rejection_reason == "Please remove the candidate number"


def test_number_warnings_skipped_when_not_found():
    reply = _reply()
    reply["extractedText"]["rawText"] = "للتواصل 99887766"

    assert _reconcile(reply).result.warnings == []


def test_job_seeker_phrase_is_always_a_violation():
    reply = _reply()
    reply["extractedText"]["rawText"] = "سأعمل على فتح ملف الباحثين عن عمل"

    result = _reconcile(reply).result

    assert result.is_compliant is False
    assert result.overall_score == 0
    items = result.categories.content_scope.items
    assert len(items) == 1
    assert items[0].rule == "OBJECTIVES_OUTSIDE_POWERS"
    assert items[0].violated is True
    assert items[0].confidence == 100
    assert items[0].violating_objectives == ["فتح ملف الباحثين"]
    assert result.categories.content_scope.status == "fail"
    assert result.rejection_reason == rules.TEXT_VIOLATION_RULES[0].rejection_message
    assert "[System enforced violation:" in result.analysis_trace.step4_decision_logic

    again = reconcile(result, model_name=MODEL, now=NOW)
    assert len(again.result.categories.content_scope.items) == 1
    assert again.corrections == []


def test_injection_appends_to_existing_rejection_reason():
    reply = _reply(isCompliant=False, overallScore=20, rejectionReason="Please remove the national flag")
    reply["extractedText"]["rawText"] = "سأسعى للحصول على وظائف لأبناء الولاية"

    result = _reconcile(reply).result

    assert result.rejection_reason == (
        "Please remove the national flag | "
        + rules.TEXT_VIOLATION_RULES[2].rejection_message
    )
    assert result.categories.content_scope.items[0].rule == "ELECTION_PROMISES"


def test_injection_creates_missing_content_scope():
    reply = _reply()
    del reply["categories"]
    reply["extractedText"]["rawText"] = "ضمان حصول الجميع على السكن"

    result = _reconcile(reply).result

    assert result.categories.content_scope.status == "fail"
    assert result.categories.content_scope.items[0].violating_objectives == [
        "ضمان حصول"
    ]


def test_apply_text_rules_accepts_custom_rule_table():
    custom = (
        TextViolationRule(
            name="build_schools",
            pattern=re.compile(r"سأبني\s*\d*\s*مدارس"),
            rule="OBJECTIVES_OUTSIDE_POWERS",
            explanation="Building schools is an executive action.",
            rejection_message="Building schools is outside Shura powers.",
        ),
    )
    result = _decode(_reply())
    result.extracted_text.raw_text = "سأبني 5 مدارس جديدة"

    corrections = apply_text_rules(result, custom)

    assert [c.code for c in corrections] == ["text_rule:build_schools"]
    assert result.categories.content_scope.items[0].violating_objectives == [
        "سأبني 5 مدارس"
    ]


def test_reconcile_is_idempotent_on_messy_reply():
    reply = _with_number_finding(
        _reply(
            documentType={
                "isElectionPropaganda": False,
                "actualType": "training_ad",
                "reasoning": "short",
            }
        ),
        details="99887766",
    )
    del reply["_analysis_trace"]
    reply["extractedText"]["rawText"] = "للتواصل 99887766 ملف الباحثين"

    first = _reconcile(reply)
    second = reconcile(first.result, model_name=MODEL)

    assert first.corrections
    assert second.corrections == []
    assert second.result.model_dump() == first.result.model_dump()


@pytest.mark.parametrize(
    "findings, expected",
    [
        (
            [("CANDIDATE_NUMBER", ""), ("ELECTION_LOGO", "")],
            rules.NUMBER_AND_LOGO_REASON,
        ),
        ([("ELECTION_LOGO", "seal top-left")], "Please remove the election logo"),
        (
            [("HISTORICAL_SYMBOLS", "Faint Nizwa Fort outline")],
            rules.HISTORICAL_SYMBOL_REASONS[0][1],
        ),
        (
            [("HISTORICAL_SYMBOLS", "Sohar Gate archway")],
            rules.HISTORICAL_SYMBOL_REASONS[1][1],
        ),
        ([("HISTORICAL_SYMBOLS", "tower")], rules.HISTORICAL_SYMBOL_REASON),
        (
            [("NATIONAL_FLAG", ""), ("PUBLIC_FIGURES", "")],
            "The poster contains public figures",
        ),
        ([("STATE_EMBLEM", "")], "Please remove the state emblem"),
    ],
)
def test_rejection_reason_prohibited_content_priority(findings, expected):
    reply = _reply(isCompliant=False)
    reply["categories"]["prohibitedContent"]["items"] = [
        {"rule": rule, "found": True, "confidence": 90, "details": details}
        for rule, details in findings
    ]

    assert generate_rejection_reason(_decode(reply)) == expected


@pytest.mark.parametrize(
    "violated, expected",
    [
        (["PREVIOUS_TERM_EXPLOITATION", "ELECTION_PROMISES"], rules.CONTENT_SCOPE_REASONS[1][1]),
        (["DEVIATION_FROM_SCOPE"], rules.CONTENT_SCOPE_REASONS[2][1]),
        (["ELECTION_PROMISES", "OBJECTIVES_OUTSIDE_POWERS"], rules.CONTENT_SCOPE_REASONS[0][1]),
    ],
)
def test_rejection_reason_content_scope_priority(violated, expected):
    reply = _reply(isCompliant=False)
    reply["categories"]["contentScope"]["items"] = [
        {"rule": rule, "violated": True, "confidence": 80} for rule in violated
    ]

    assert generate_rejection_reason(_decode(reply)) == expected


def test_rejection_reason_blurry_photo_before_content_checks():
    reply = _reply(
        isCompliant=False,
        imageQuality={"isAcceptable": False, "issues": ["blurry"]},
    )
    _with_number_finding(reply, details="رقم المرشح 3")

    assert generate_rejection_reason(_decode(reply)) == rules.BLURRY_PHOTO_REASON


def test_rejection_reason_missing_required_content():
    reply = _reply(isCompliant=False)
    reply["categories"]["requiredContent"]["items"][0]["present"] = False

    assert (
        generate_rejection_reason(_decode(reply))
        == rules.MISSING_REQUIRED_CONTENT_REASON
    )


def test_rejection_reason_falls_back_to_default():
    assert (
        generate_rejection_reason(_decode(_reply(isCompliant=False)))
        == rules.DEFAULT_REJECTION_REASON
    )


def test_confidence_penalises_low_item_confidence_and_missing_violations():
    reply = _reply(isCompliant=False)
    reply["categories"]["prohibitedContent"]["items"][0]["confidence"] = 40
    reply["categories"]["contentScope"]["items"] = [
        {"rule": "ELECTION_PROMISES", "violated": False, "confidence": 60}
    ]

    # 90 - 10 (no listed violations) + 5 (reasoning) - 10 (mean 50)
    assert calculate_confidence(_decode(reply)) == 75


@pytest.mark.parametrize(
    "has_step1, compliant, has_violations, reasoning, item_confidence",
    list(product([True, False], [True, False, None], [True, False], ["", "x" * 30], [0, 30, 95])),
)
def test_confidence_stays_within_bounds(
    has_step1, compliant, has_violations, reasoning, item_confidence
):
    reply = _reply(isCompliant=compliant)
    trace = reply["_analysis_trace"]
    trace["step1_content_extraction"] = "Found text" if has_step1 else PLACEHOLDER
    trace["step3_violations_found"] = ["CANDIDATE_NUMBER"] if has_violations else []
    reply["documentType"]["reasoning"] = reasoning
    reply["categories"]["prohibitedContent"]["items"][0]["confidence"] = item_confidence

    confidence = calculate_confidence(_decode(reply))

    assert 50 <= confidence <= 100


def test_non_compliant_result_always_gets_a_reason():
    for overrides in (
        {"isCompliant": False},
        {"isCompliant": False, "rejectionReason": ""},
        {"isCompliant": None},
    ):
        result = _reconcile(_reply(**overrides)).result
        assert result.rejection_reason
