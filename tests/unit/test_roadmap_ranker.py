"""
Unit tests for the roadmap ranker.
"""

import pytest

from factories import StubGateway, analyzed, make_module
from legacylens.core.constants import Recommendation, RiskLevel
from legacylens.core.exceptions import ResponseShapeError
from legacylens.domain.job import RoadmapItem
from legacylens.indexing.service import InMemoryIndex
from legacylens.inference import prompts
from legacylens.services.roadmap_ranker import (
    OMITTED_REASONING,
    RoadmapRanker,
    normalize_roadmap,
    summarize_roadmap,
)


def _item(module_id: str, phase: int = 1, effort: float = 1.0, **fields) -> RoadmapItem:
    data = {
        "module_id": module_id,
        "phase": phase,
        "risk_level": "low",
        "effort_days": effort,
        "recommendation": "refactor",
    }
    data.update(fields)
    return RoadmapItem(**data)


class TestNormalizeRoadmap:
    """Tests for roadmap normalization."""

    def test_one_item_per_module_in_module_order(self) -> None:
        """Items are reordered to follow the modules."""
        modules = [make_module(i) for i in range(3)]
        items = [_item(modules[2].module_id), _item(modules[0].module_id), _item(modules[1].module_id)]

        roadmap = normalize_roadmap(items, modules)

        assert [r.module_id for r in roadmap] == [m.module_id for m in modules]

    def test_unknown_and_duplicate_items_dropped(self) -> None:
        """Unknown module IDs are dropped and the first duplicate wins."""
        modules = [make_module(0)]
        items = [
            _item("ghost"),
            _item(modules[0].module_id, phase=2),
            _item(modules[0].module_id, phase=1),
        ]

        roadmap = normalize_roadmap(items, modules)

        assert len(roadmap) == 1
        assert roadmap[0].phase == 2

    def test_dependencies_restricted_to_known_modules(self) -> None:
        """Dependencies on unknown modules or on the item itself are removed."""
        modules = [make_module(0), make_module(1)]
        first, second = modules[0].module_id, modules[1].module_id
        items = [
            _item(first, dependencies=[second, "ghost", first, second]),
            _item(second),
        ]

        roadmap = normalize_roadmap(items, modules)

        assert roadmap[0].dependencies == [second]

    def test_omitted_modules_get_conservative_default(self) -> None:
        """A module the ranking skipped is deferred to phase 3."""
        modules = [make_module(0), make_module(1)]

        roadmap = normalize_roadmap([_item(modules[0].module_id)], modules)

        default = roadmap[1]
        assert default.module_id == modules[1].module_id
        assert default.phase == 3
        assert default.risk_level == RiskLevel.HIGH
        assert default.recommendation == Recommendation.DEFER
        assert default.reasoning == OMITTED_REASONING


class TestSummarizeRoadmap:
    """Tests for roadmap summaries."""

    def test_counts_and_effort(self) -> None:
        """Phases are counted and effort summed."""
        modules = [
            analyzed(make_module(0)),
            analyzed(make_module(1), requires_human_review=True),
            analyzed(make_module(2)),
        ]
        roadmap = [
            _item(modules[0].module_id, phase=1, effort=2),
            _item(modules[1].module_id, phase=3, effort=5.5),
            _item(modules[2].module_id, phase=1, effort=0.5),
        ]

        summary = summarize_roadmap(roadmap, modules)

        assert summary.to_dict() == {
            "totalModules": 3,
            "phase1": 2,
            "phase2": 0,
            "phase3": 1,
            "totalEffortDays": 8.0,
            "requiresReview": 1,
        }


class TestRoadmapRanker:
    """Tests for RoadmapRanker."""

    @pytest.mark.asyncio
    async def test_rank_single_call(self) -> None:
        """All modules are ranked with one inference call."""
        gateway = StubGateway()
        modules = [analyzed(make_module(i)) for i in range(4)]

        roadmap = await RoadmapRanker(gateway).rank(modules)

        assert len(roadmap) == 4
        assert len(gateway.calls) == 1
        assert gateway.calls[0][0] == prompts.ROADMAP_SYSTEM_PROMPT

    @pytest.mark.asyncio
    async def test_partial_ranking_is_completed(self) -> None:
        """A response covering only some modules is filled in."""
        gateway = StubGateway(roadmap=lambda ids: [{
            "moduleId": ids[0],
            "phase": 2,
            "riskLevel": "medium",
            "effortDays": 3,
            "reasoning": "Shared dependency",
            "recommendation": "isolate",
            "dependencies": ids[1:],
        }])
        modules = [analyzed(make_module(i)) for i in range(3)]

        roadmap = await RoadmapRanker(gateway).rank(modules)

        assert [r.phase for r in roadmap] == [2, 3, 3]
        assert roadmap[0].dependencies == [modules[1].module_id, modules[2].module_id]

    @pytest.mark.asyncio
    async def test_wrong_shape_propagates(self) -> None:
        """A response that is not a list of items is a parse failure."""
        gateway = StubGateway(roadmap=lambda ids: {"items": ids})

        with pytest.raises(ResponseShapeError):
            await RoadmapRanker(gateway).rank([analyzed(make_module(0))])

    @pytest.mark.asyncio
    async def test_dependency_summary_uses_index(self) -> None:
        """Related modules come from the index; lookup failures are noted."""
        index = InMemoryIndex()
        billing_a = analyzed(make_module(0), intent="Posts invoice totals to ledger")
        billing_b = analyzed(make_module(1), intent="Reverses invoice totals in ledger")
        unindexed = analyzed(make_module(2), intent="Sends reminder emails")
        await index.index(billing_a)
        await index.index(billing_b)

        summary = await RoadmapRanker(StubGateway(), indexing=index).build_dependency_summary(
            [billing_a, billing_b, unindexed]
        )

        lines = summary.splitlines()
        assert lines[0] == f"{billing_a.module_id}: {billing_b.module_id}"
        assert lines[1] == f"{billing_b.module_id}: {billing_a.module_id}"
        assert lines[2] == f"{unindexed.module_id}: related lookup unavailable"
