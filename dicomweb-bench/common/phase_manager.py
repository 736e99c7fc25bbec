"""
Phase manager for tracking the benchmark lifecycle.
"""

import time
import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


class BenchmarkState(Enum):
    CREATED = "created"
    CONFIG_VALIDATED = "config_validated"
    AUTHORIZED = "authorized"
    RUNNING = "running"
    AGGREGATED = "aggregated"
    REPORTED = "reported"
    FAILED = "failed"


# Allowed forward transitions; FAILED is reachable from any non-terminal state
_TRANSITIONS: Dict[BenchmarkState, Tuple[BenchmarkState, ...]] = {
    BenchmarkState.CREATED: (BenchmarkState.CONFIG_VALIDATED,),
    BenchmarkState.CONFIG_VALIDATED: (BenchmarkState.AUTHORIZED,),
    BenchmarkState.AUTHORIZED: (BenchmarkState.RUNNING,),
    BenchmarkState.RUNNING: (BenchmarkState.RUNNING, BenchmarkState.AGGREGATED),
    BenchmarkState.AGGREGATED: (BenchmarkState.REPORTED,),
    BenchmarkState.REPORTED: (),
    BenchmarkState.FAILED: (),
}


class PhaseManager:
    """Tracks the lifecycle state of a benchmark run and when each state began."""

    def __init__(self):
        """Initialize the phase manager."""
        self.state: BenchmarkState = BenchmarkState.CREATED
        self.iteration: Optional[int] = None
        self.error: Optional[BaseException] = None
        self.history: List[Tuple[BenchmarkState, float]] = [(self.state, time.time())]

        logger.debug("Initialized PhaseManager")

    def transition(self, state: BenchmarkState, iteration: Optional[int] = None) -> None:
        """Move to a new state.

        Args:
            state: Target state
            iteration: Iteration number when entering RUNNING

        Raises:
            RuntimeError: If the transition is not allowed from the current state
        """
        if state is BenchmarkState.FAILED:
            raise RuntimeError("Use fail() to enter the FAILED state")
        if state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal transition: {self.state.value} -> {state.value}")

        self.state = state
        self.iteration = iteration if state is BenchmarkState.RUNNING else self.iteration
        self.history.append((state, time.time()))

        if state is BenchmarkState.RUNNING:
            logger.debug(f"Entered {state.value} (iteration {iteration})")
        else:
            logger.debug(f"Entered {state.value}")

    def fail(self, error: BaseException) -> None:
        """Enter the terminal FAILED state."""
        if self.is_terminal():
            logger.warning(f"Cannot fail from terminal state {self.state.value}: {error}")
            return
        self.error = error
        self.state = BenchmarkState.FAILED
        self.history.append((self.state, time.time()))
        logger.debug(f"Entered failed: {error}")

    def is_terminal(self) -> bool:
        return self.state in (BenchmarkState.REPORTED, BenchmarkState.FAILED)

    def get_phase_info(self) -> Dict[str, Any]:
        """Get current lifecycle information.

        Returns:
            Dictionary with current state information
        """
        started = self.history[0][1]
        return {
            'state': self.state.value,
            'iteration': self.iteration,
            'error': str(self.error) if self.error else None,
            'elapsed_seconds': time.time() - started,
        }

    def __repr__(self) -> str:
        return f"PhaseManager(state='{self.state.value}', iteration={self.iteration})"
