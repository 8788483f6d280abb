"""
ValidationPipeline — runs the three stages in order.

  1. syntax          validator.validate_syntax
  2. cross_field     validator.validate_cross_field
  3. business_rules  BusinessRuleChecker.check (external, optional)

A stage runs only if every earlier stage returned no errors. The outcome is a
ValidationResult value; a failed stage is an expected result, not an exception.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

from intake.errors import BUSINESS_RULE_VIOLATION, VALIDATION_ERROR, ErrorKind, PipelineError
from intake.registration.business_rules import BusinessRuleChecker
from intake.registration.schemas import DraftSubmission
from intake.registration.validator import validate_cross_field, validate_syntax

logger = logging.getLogger(__name__)


class ValidationStage(str, Enum):
    syntax = "syntax"
    cross_field = "cross_field"
    business_rules = "business_rules"


@dataclass(frozen=True)
class ValidationResult:
    stages_run: Tuple[ValidationStage, ...] = ()
    error: Optional[PipelineError] = None
    failed_stage: Optional[ValidationStage] = None

    @property
    def valid(self) -> bool:
        return self.error is None

    @property
    def field_errors(self) -> Dict[str, str]:
        return dict(self.error.details) if self.error else {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "errors": self.field_errors,
            "stages": [s.value for s in self.stages_run],
            "failed_stage": self.failed_stage.value if self.failed_stage else None,
        }


def _validation_error(details: Dict[str, str]) -> PipelineError:
    return PipelineError(
        kind=ErrorKind.validation,
        code=VALIDATION_ERROR,
        message="Some fields are invalid. Please check your input.",
        details=details,
    )


def _business_rule_error(details: Dict[str, str]) -> PipelineError:
    return PipelineError(
        kind=ErrorKind.business_rule,
        code=BUSINESS_RULE_VIOLATION,
        message="Some selected options cannot be provided at this time. Please review your selection.",
        details=details,
    )


class ValidationPipeline:
    def __init__(self, business_rules: BusinessRuleChecker) -> None:
        self.business_rules = business_rules

    def validate_local(self, fields: Mapping[str, Any]) -> ValidationResult:
        """Stages 1 and 2 only. No I/O."""
        syntax_errors = validate_syntax(fields)
        if syntax_errors:
            return ValidationResult(
                stages_run=(ValidationStage.syntax,),
                error=_validation_error(syntax_errors),
                failed_stage=ValidationStage.syntax,
            )

        cross_errors = validate_cross_field(DraftSubmission.from_flat(fields))
        stages = (ValidationStage.syntax, ValidationStage.cross_field)
        if cross_errors:
            return ValidationResult(
                stages_run=stages,
                error=_validation_error(cross_errors),
                failed_stage=ValidationStage.cross_field,
            )
        return ValidationResult(stages_run=stages)

    async def validate(
        self,
        fields: Mapping[str, Any],
        include_business_rules: bool = False,
    ) -> ValidationResult:
        local = self.validate_local(fields)
        if not local.valid or not include_business_rules:
            return local

        rule_errors = await self.business_rules.check(DraftSubmission.from_flat(fields))
        logger.debug("Business-rule stage finished failures=%d", len(rule_errors))
        stages = local.stages_run + (ValidationStage.business_rules,)
        if rule_errors:
            return ValidationResult(
                stages_run=stages,
                error=_business_rule_error(rule_errors),
                failed_stage=ValidationStage.business_rules,
            )
        return ValidationResult(stages_run=stages)
