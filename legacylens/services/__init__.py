"""
Services package - analysis, ranking, refactoring and ingestion.
"""

from legacylens.services.batch_processor import BatchOutcome, BatchProcessor, PartialFailure
from legacylens.services.ingestion import GitHubSource, SourceFile, extract_archive, parse_repo_url
from legacylens.services.intent_extractor import IntentExtractor
from legacylens.services.refactor_service import RefactorResult, RefactorService
from legacylens.services.roadmap_ranker import (
    RoadmapRanker,
    RoadmapSummary,
    normalize_roadmap,
    summarize_roadmap,
)
from legacylens.services.test_scaffolder import TestScaffolder

__all__ = [
    "BatchOutcome",
    "BatchProcessor",
    "GitHubSource",
    "IntentExtractor",
    "PartialFailure",
    "RefactorResult",
    "RefactorService",
    "RoadmapRanker",
    "RoadmapSummary",
    "SourceFile",
    "TestScaffolder",
    "extract_archive",
    "normalize_roadmap",
    "parse_repo_url",
    "summarize_roadmap",
]
