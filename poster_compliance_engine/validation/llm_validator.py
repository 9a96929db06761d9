from __future__ import annotations

import json
import logging
from typing import Callable, Iterable, List, Optional, Tuple

from poster_compliance_engine.ocr.arabic_ocr import ArabicOCR
from poster_compliance_engine.validation.config import (
    PosterValidationConfig,
    get_poster_validation_config,
)
from poster_compliance_engine.validation.llm_client import LLMClient
from poster_compliance_engine.validation.prompts import (
    VALIDATION_PROMPT,
    build_user_prompt,
)
from poster_compliance_engine.validation.reconciler import reconcile
from poster_compliance_engine.validation.schemas import (
    AnalysisTrace,
    ValidationResult,
)

logger = logging.getLogger(__name__)

OCRFunc = Callable[[bytes], str]


def degraded_result(message: str) -> ValidationResult:
    return ValidationResult(
        is_compliant=False,
        overall_score=0,
        summary="Validation failed due to technical error",
        rejection_reason=f"Technical error: {message}",
        error=message,
        analysis_trace=AnalysisTrace(
            step1_content_extraction="Error occurred",
            step2_document_type="Could not analyze",
            step3_violations_found=[],
            step4_decision_logic="System error",
        ),
    )


class PosterValidator:
    def __init__(
        self,
        llm_client: Optional[LLMClient],
        config: Optional[PosterValidationConfig] = None,
        ocr: Optional[OCRFunc] = None,
    ) -> None:
        self.llm_client = llm_client
        self.config = config or get_poster_validation_config()
        self.ocr = ocr

    @property
    def model_name(self) -> str:
        return getattr(self.llm_client, "model", None) or self.config.model

    def validate(
        self, image_bytes: bytes, mime_type: str = "image/jpeg"
    ) -> ValidationResult:
        if self.llm_client is None:
            return degraded_result(
                f"LLM unavailable - {self.config.api_key_env} is not configured"
            )
        ocr_text = self._run_ocr(image_bytes)
        try:
            response = self.llm_client.request_json(
                VALIDATION_PROMPT,
                build_user_prompt(ocr_text),
                image_bytes=image_bytes,
                mime_type=mime_type,
            )
            result = ValidationResult.model_validate(response)
            if result.analysis_trace is not None:
                logger.debug(
                    "AI analysis trace: %s",
                    json.dumps(result.analysis_trace.model_dump(), ensure_ascii=False),
                )
            outcome = reconcile(result, model_name=self.model_name)
        except Exception as exc:
            logger.exception("Poster validation failed model=%s", self.model_name)
            return degraded_result(str(exc))

        logger.info(
            "Poster validated model=%s compliant=%s score=%s corrections=%s",
            self.model_name,
            outcome.result.is_compliant,
            outcome.result.overall_score,
            len(outcome.corrections),
        )
        return outcome.result

    def validate_many(
        self, images: Iterable[Tuple[bytes, str]]
    ) -> List[ValidationResult]:
        return [self.validate(image_bytes, mime_type) for image_bytes, mime_type in images]

    def _run_ocr(self, image_bytes: bytes) -> Optional[str]:
        if self.ocr is None:
            return None
        try:
            return self.ocr(image_bytes)
        except Exception:
            logger.warning("OCR failed; continuing without text context", exc_info=True)
            return None


def build_poster_validator(
    config: Optional[PosterValidationConfig] = None,
) -> PosterValidator:
    config = config or get_poster_validation_config()
    llm_client: Optional[LLMClient] = None
    if config.llm_available:
        llm_client = LLMClient(
            provider=config.provider,
            model=config.model,
            api_key=config.api_key,
            api_url=config.api_url,
            timeout_s=config.timeout_s,
            temperature=config.sampling.temperature,
            top_p=config.sampling.top_p,
            max_tokens=config.sampling.max_tokens,
        )
    else:
        logger.warning(
            "LLM credentials missing env=%s; every request will degrade",
            config.api_key_env,
        )

    ocr: Optional[OCRFunc] = None
    if config.ocr.enabled:
        ocr = ArabicOCR.from_config(config.ocr)
    return PosterValidator(llm_client, config=config, ocr=ocr)


def validate_poster(
    image_bytes: bytes,
    mime_type: str = "image/jpeg",
    config: Optional[PosterValidationConfig] = None,
    validator: Optional[PosterValidator] = None,
) -> ValidationResult:
    validator = validator or build_poster_validator(config)
    return validator.validate(image_bytes, mime_type)
