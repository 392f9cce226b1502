"""
Checkpoint Configuration - Controls checkpoint behavior during execution.
"""

from dataclasses import dataclass


@dataclass
class CheckpointConfig:
    """
    Configuration for checkpoint behavior during graph execution.

    Checkpoints are only ever written at step boundaries, after the step's
    updates are merged. These settings control whether that happens and
    when old checkpoints are pruned.
    """

    # Enable/disable checkpointing
    enabled: bool = True

    # When to checkpoint
    checkpoint_on_step_complete: bool = True

    # Pruning (time-based)
    checkpoint_max_age_days: int = 7  # Prune checkpoints older than 1 week
    prune_every_n_steps: int = 10  # Check for pruning every N steps

    def should_checkpoint_step(self) -> bool:
        """Check if should checkpoint after a step's merge."""
        return self.enabled and self.checkpoint_on_step_complete

    def should_prune_checkpoints(self, steps_executed: int) -> bool:
        """
        Check if should prune checkpoints based on execution progress.

        Args:
            steps_executed: Number of steps completed so far

        Returns:
            True if should check for old checkpoints and prune them
        """
        return (
            self.enabled
            and self.prune_every_n_steps > 0
            and steps_executed % self.prune_every_n_steps == 0
        )


# Default configuration: checkpoint every step, prune weekly-old entries
DEFAULT_CHECKPOINT_CONFIG = CheckpointConfig(
    enabled=True,
    checkpoint_on_step_complete=True,
    checkpoint_max_age_days=7,
    prune_every_n_steps=10,
)


# Minimal configuration (checkpoint every step, prune less often)
MINIMAL_CHECKPOINT_CONFIG = CheckpointConfig(
    enabled=True,
    checkpoint_on_step_complete=True,
    checkpoint_max_age_days=1,
    prune_every_n_steps=50,
)


# Disabled configuration (no checkpointing)
DISABLED_CHECKPOINT_CONFIG = CheckpointConfig(
    enabled=False,
)
