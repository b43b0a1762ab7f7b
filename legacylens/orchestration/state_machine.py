"""
Job state machine.
"""

from dataclasses import dataclass
from typing import Optional

from legacylens.core.constants import JobStatus, PipelineStage
from legacylens.core.logging import get_logger

logger = get_logger(__name__)


class StateMachine:
    """
    Generic state machine over string states.
    """

    def __init__(
        self,
        states: list[str],
        final_states: list[str],
        transitions: dict[str, list[str]],
    ) -> None:
        """
        Initialize the state machine.

        Args:
            states: List of valid states
            final_states: Terminal states
            transitions: Valid transitions {from_state: [to_states]}
        """
        self.states = set(states)
        self.final_states = set(final_states)
        self.transitions = transitions

        # Validate
        for final in final_states:
            if final not in self.states:
                raise ValueError(f"Final state '{final}' not in states")
        for source, targets in transitions.items():
            unknown = [s for s in [source, *targets] if s not in self.states]
            if unknown:
                raise ValueError(f"Transition from '{source}' uses unknown states {unknown}")

    def can_transition(self, from_state: str, to_state: str) -> bool:
        """Check if transition is valid."""
        if from_state not in self.transitions:
            return False
        return to_state in self.transitions[from_state]

    def get_next_states(self, current_state: str) -> list[str]:
        """Get valid next states from current state."""
        return self.transitions.get(current_state, [])

    def is_final(self, state: str) -> bool:
        """Check if state is a final state."""
        return state in self.final_states


JOB_STATES = [status.value for status in JobStatus]

JOB_TRANSITIONS = {
    JobStatus.PENDING.value: [JobStatus.INGESTING.value, JobStatus.ERROR.value],
    JobStatus.INGESTING.value: [JobStatus.ANALYZING.value, JobStatus.ERROR.value],
    JobStatus.ANALYZING.value: [JobStatus.ROADMAPPING.value, JobStatus.ERROR.value],
    # roadmapping is both the roadmap stage's precondition and its in-progress marker
    JobStatus.ROADMAPPING.value: [
        JobStatus.ROADMAPPING.value,
        JobStatus.COMPLETE.value,
        JobStatus.ERROR.value,
    ],
    JobStatus.COMPLETE.value: [],
    JobStatus.ERROR.value: [],
}


@dataclass(frozen=True)
class StageSpec:
    """Statuses a pipeline stage reads, holds and leaves behind."""

    stage: PipelineStage
    required_status: str
    in_progress_status: str
    next_status: str
    next_stage: Optional[PipelineStage] = None


STAGE_SPECS: dict[str, StageSpec] = {
    PipelineStage.ANALYZE.value: StageSpec(
        stage=PipelineStage.ANALYZE,
        required_status=JobStatus.INGESTING.value,
        in_progress_status=JobStatus.ANALYZING.value,
        next_status=JobStatus.ROADMAPPING.value,
        next_stage=PipelineStage.ROADMAP,
    ),
    PipelineStage.ROADMAP.value: StageSpec(
        stage=PipelineStage.ROADMAP,
        required_status=JobStatus.ROADMAPPING.value,
        in_progress_status=JobStatus.ROADMAPPING.value,
        next_status=JobStatus.COMPLETE.value,
    ),
}


def create_job_state_machine() -> StateMachine:
    """Create state machine for the job pipeline."""
    return StateMachine(
        states=JOB_STATES,
        final_states=[JobStatus.COMPLETE.value, JobStatus.ERROR.value],
        transitions=JOB_TRANSITIONS,
    )
