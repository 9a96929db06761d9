"""Poster validation: model call, result schema and reconciliation."""

from poster_compliance_engine.validation.config import (
    PosterValidationConfig,
    get_poster_validation_config,
)
from poster_compliance_engine.validation.llm_validator import (
    PosterValidator,
    build_poster_validator,
)
from poster_compliance_engine.validation.reconciler import reconcile
from poster_compliance_engine.validation.schemas import ValidationResult

__all__ = [
    "PosterValidationConfig",
    "get_poster_validation_config",
    "PosterValidator",
    "build_poster_validator",
    "reconcile",
    "ValidationResult",
]
