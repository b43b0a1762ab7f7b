"""
Orchestration package - job state machine, pipeline and stage queue.
"""

from legacylens.orchestration.pipeline import PipelineOrchestrator
from legacylens.orchestration.stage_queue import StageMessage, StageQueue
from legacylens.orchestration.state_machine import (
    STAGE_SPECS,
    StageSpec,
    StateMachine,
    create_job_state_machine,
)

__all__ = [
    "PipelineOrchestrator",
    "STAGE_SPECS",
    "StageMessage",
    "StageQueue",
    "StageSpec",
    "StateMachine",
    "create_job_state_machine",
]
