"""
Test scaffold generation for refactored modules.
"""

import re

from legacylens.core.exceptions import LegacyLensError
from legacylens.core.logging import get_logger
from legacylens.inference import prompts
from legacylens.inference.gateway import InferenceGateway, strip_code_fences

logger = get_logger(__name__)


def fallback_scaffold(module_id: str, intent: str, function_name: str | None = None) -> str:
    """Minimal pytest module used when generation fails."""
    test_name = re.sub(r"\W+", "_", (function_name or "module").lower()).strip("_") or "module"
    return prompts.FALLBACK_TEST_SCAFFOLD.format(
        intent=" ".join(intent.split()),
        module_id=module_id,
        test_name=test_name,
    )


class TestScaffolder:
    """Generates pytest tests that pin a refactored module to its intent."""

    __test__ = False

    def __init__(self, gateway: InferenceGateway) -> None:
        self.gateway = gateway

    async def generate(
        self,
        module_id: str,
        intent: str,
        refactored_code: str,
        target_language: str,
        function_name: str | None = None,
    ) -> str:
        """Return pytest source for the refactored code, or the fallback template."""
        try:
            text = await self.gateway.complete(
                prompts.TEST_SCAFFOLD_SYSTEM_PROMPT,
                prompts.TEST_SCAFFOLD_USER_TEMPLATE.format(
                    intent=intent,
                    target_language=target_language,
                    refactored_code=refactored_code,
                ),
            )
        except LegacyLensError as e:
            logger.warning("Test scaffold generation failed", module_id=module_id, error=e.message)
            return fallback_scaffold(module_id, intent, function_name)

        scaffold = strip_code_fences(text)
        return scaffold or fallback_scaffold(module_id, intent, function_name)
