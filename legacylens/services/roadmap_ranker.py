"""
Roadmap ranker: sequences analyzed modules into migration phases.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Optional

from legacylens.core.constants import Recommendation, RiskLevel
from legacylens.core.exceptions import LegacyLensError
from legacylens.core.logging import get_logger
from legacylens.domain.job import CodeModule, RoadmapItem
from legacylens.inference import prompts
from legacylens.inference.gateway import InferenceGateway
from legacylens.indexing.service import IndexingService

logger = get_logger(__name__)

OMITTED_REASONING = "Not ranked by the inference service; held for manual review."


@dataclass
class RoadmapSummary:
    """Counts per phase and total effort of a roadmap."""

    total_modules: int = 0
    phase_counts: dict[int, int] = field(default_factory=lambda: {1: 0, 2: 0, 3: 0})
    total_effort_days: float = 0.0
    requires_review: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalModules": self.total_modules,
            "phase1": self.phase_counts[1],
            "phase2": self.phase_counts[2],
            "phase3": self.phase_counts[3],
            "totalEffortDays": self.total_effort_days,
            "requiresReview": self.requires_review,
        }


def summarize_roadmap(roadmap: list[RoadmapItem], modules: Optional[list[CodeModule]] = None) -> RoadmapSummary:
    """Build a summary of ``roadmap``; ``modules`` adds the review count."""
    summary = RoadmapSummary(total_modules=len(roadmap))
    for item in roadmap:
        summary.phase_counts[item.phase] += 1
        summary.total_effort_days += item.effort_days
    if modules:
        summary.requires_review = sum(1 for m in modules if m.requires_human_review)
    return summary


def normalize_roadmap(items: list[RoadmapItem], modules: list[CodeModule]) -> list[RoadmapItem]:
    """
    Return exactly one roadmap item per module, in module order.

    Items for unknown modules are dropped, the first item wins for
    duplicates, dependencies are restricted to known modules other than the
    item itself, and modules the ranking omitted get a phase 3 / high risk /
    defer item.
    """
    known = {m.module_id for m in modules}
    ranked: dict[str, RoadmapItem] = {}

    for item in items:
        if item.module_id not in known:
            logger.debug("Dropping roadmap item for unknown module", module_id=item.module_id)
            continue
        if item.module_id in ranked:
            continue
        dependencies = list(
            dict.fromkeys(d for d in item.dependencies if d in known and d != item.module_id)
        )
        ranked[item.module_id] = item.model_copy(update={"dependencies": dependencies})

    roadmap = []
    omitted = 0
    for module in modules:
        item = ranked.get(module.module_id)
        if item is None:
            omitted += 1
            item = RoadmapItem(
                module_id=module.module_id,
                phase=3,
                risk_level=RiskLevel.HIGH,
                effort_days=0.0,
                reasoning=OMITTED_REASONING,
                recommendation=Recommendation.DEFER,
            )
        roadmap.append(item)

    if omitted:
        logger.warning("Roadmap omitted modules", omitted=omitted, total=len(modules))

    return roadmap


class RoadmapRanker:
    """
    Ranks all modules of a job with a single inference call.
    """

    def __init__(
        self,
        gateway: InferenceGateway,
        indexing: Optional[IndexingService] = None,
        related_top_k: int = 3,
    ) -> None:
        """
        Initialize the ranker.

        Args:
            gateway: Inference gateway
            indexing: Index used to describe related modules (optional)
            related_top_k: Related modules listed per module
        """
        self.gateway = gateway
        self.indexing = indexing
        self.related_top_k = related_top_k

    async def rank(self, modules: list[CodeModule]) -> list[RoadmapItem]:
        """
        Produce the roadmap for ``modules``.

        Raises:
            UpstreamError: The ranking call failed
            ParseFailureError: The ranking response could not be decoded
        """
        dependency_summary = await self.build_dependency_summary(modules)
        module_list = json.dumps(
            [
                {
                    "moduleId": m.module_id,
                    "filePath": m.file_path,
                    "functionName": m.function_name,
                    "intent": m.intent,
                    "confidence": m.confidence,
                    "domainHints": m.domain_hints,
                }
                for m in modules
            ],
            indent=2,
        )

        items = await self.gateway.complete_json(
            prompts.ROADMAP_SYSTEM_PROMPT,
            prompts.ROADMAP_USER_TEMPLATE.format(
                modules=module_list,
                dependency_summary=dependency_summary,
            ),
            list[RoadmapItem],
        )

        roadmap = normalize_roadmap(items, modules)
        logger.info("Roadmap ranked", modules=len(modules), returned=len(items))
        return roadmap

    async def build_dependency_summary(self, modules: list[CodeModule]) -> str:
        """
        One line per module naming its related modules.

        Lookup failures are written into the summary instead of raised.
        """
        if self.indexing is None or self.related_top_k == 0:
            return "(no related-module index available)"

        lines = []
        for module in modules:
            try:
                related = await self.indexing.search_related(module.module_id, self.related_top_k)
            except LegacyLensError as e:
                logger.debug("Related lookup failed", module_id=module.module_id, error=e.message)
                lines.append(f"{module.module_id}: related lookup unavailable")
                continue
            names = ", ".join(r.module_id for r in related) or "none"
            lines.append(f"{module.module_id}: {names}")

        return "\n".join(lines)
