"""
Intent extraction: infer the business purpose of a code module.
"""

from __future__ import annotations

from typing import Optional

from legacylens.core.constants import DEFAULT_HUMAN_REVIEW_THRESHOLD, EXTRACTION_FAILED_HINT
from legacylens.core.exceptions import LegacyLensError
from legacylens.core.logging import get_logger
from legacylens.domain.inference import DriftCheck, IntentExtraction
from legacylens.domain.job import CodeModule
from legacylens.inference import prompts
from legacylens.inference.gateway import InferenceGateway

logger = get_logger(__name__)


def failed_analysis(module: CodeModule, hint: str, reason: str) -> CodeModule:
    """
    Sentinel result for a module whose analysis failed.

    Args:
        module: Module that could not be analyzed
        hint: Failure tag added to the domain hints
        reason: Diagnostic text stored as the intent
    """
    return module.model_copy(
        update={
            "intent": f"Intent extraction failed: {reason}",
            "confidence": 0.0,
            "requires_human_review": True,
            "domain_hints": [hint],
        }
    )


class IntentExtractor:
    """
    Asks the inference service what a module does for the business.
    """

    def __init__(
        self,
        gateway: InferenceGateway,
        review_threshold: float = DEFAULT_HUMAN_REVIEW_THRESHOLD,
    ) -> None:
        """
        Initialize the extractor.

        Args:
            gateway: Inference gateway
            review_threshold: Confidence below which a module needs human review
        """
        self.gateway = gateway
        self.review_threshold = review_threshold

    async def extract(self, module: CodeModule) -> CodeModule:
        """
        Return ``module`` with intent, confidence, review flag and domain hints filled in.

        Never raises for inference failures: the module comes back as an
        ``extraction-failed`` sentinel instead.
        """
        user_prompt = prompts.INTENT_USER_TEMPLATE.format(
            file_path=module.file_path,
            language=module.language,
            function_name=module.function_name or "(unnamed)",
            raw_code=module.raw_code,
        )

        try:
            result = await self.gateway.complete_json(
                prompts.INTENT_SYSTEM_PROMPT, user_prompt, IntentExtraction
            )
        except LegacyLensError as e:
            logger.warning(
                "Intent extraction failed",
                module_id=module.module_id,
                error_code=e.code,
                error=e.message,
            )
            return failed_analysis(module, EXTRACTION_FAILED_HINT, e.message)
        except Exception as e:
            logger.exception("Unexpected intent extraction error", module_id=module.module_id)
            return failed_analysis(module, EXTRACTION_FAILED_HINT, str(e) or type(e).__name__)

        return module.model_copy(
            update={
                "intent": result.intent,
                "confidence": result.confidence,
                "requires_human_review": result.requires_human_review
                or result.confidence < self.review_threshold,
                "domain_hints": result.domain_hints,
            }
        )

    async def check_semantic_drift(
        self,
        intent: str,
        refactored_code: str,
    ) -> DriftCheck:
        """
        Ask whether refactored code still does what ``intent`` describes.

        A failed check is reported as drifted so that it is never mistaken
        for a pass.
        """
        user_prompt = prompts.DRIFT_USER_TEMPLATE.format(
            intent=intent,
            refactored_code=refactored_code,
        )

        try:
            return await self.gateway.complete_json(
                prompts.DRIFT_SYSTEM_PROMPT, user_prompt, DriftCheck
            )
        except LegacyLensError as e:
            logger.warning("Drift check failed", error_code=e.code, error=e.message)
            return DriftCheck(drifted=True, explanation=f"Drift check failed: {e.message}")


def drift_warning(check: DriftCheck) -> Optional[str]:
    """Human-readable warning for a drifted check, None otherwise."""
    if not check.drifted:
        return None
    return check.explanation or "Refactored code may not match the original intent"
