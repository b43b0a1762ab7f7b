"""
Domain models.
"""

from legacylens.domain.inference import DriftCheck, IntentExtraction
from legacylens.domain.job import CodeModule, Job, RefactoredModule, RoadmapItem

__all__ = [
    "CodeModule",
    "DriftCheck",
    "IntentExtraction",
    "Job",
    "RefactoredModule",
    "RoadmapItem",
]
