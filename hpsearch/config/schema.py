from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

DIRECTIONS = ("maximize", "minimize")


# ----------------------------------------------------------
# Early stopping policy
# ----------------------------------------------------------
@dataclass(frozen=True)
class StoppingPolicy:
    """When to stop training one candidate.

    The moving average of the last ``window`` checkpoint values of
    ``metric`` must improve by more than ``min_delta`` at least once every
    ``patience`` checkpoints. ``patience=0`` disables early stopping.
    """

    metric: str = "accuracy"
    patience: int = 3
    min_delta: float = 0.0
    window: int = 1
    direction: str = "maximize"  # or "minimize"

    def __post_init__(self) -> None:
        if self.patience < 0:
            raise ValueError("patience must be >= 0")
        if self.min_delta < 0:
            raise ValueError("min_delta must be >= 0")
        if self.window < 1:
            raise ValueError("window must be >= 1")
        if self.direction not in DIRECTIONS:
            raise ValueError(f"direction must be one of {DIRECTIONS}")

    @property
    def enabled(self) -> bool:
        return self.patience > 0


# ----------------------------------------------------------
# Model configuration
# ----------------------------------------------------------
@dataclass
class ModelConfig:
    """Feed-forward network shape."""

    hidden: List[int] = field(default_factory=lambda: [32])
    activation: str = "relu"  # relu | leaky_relu | tanh | sigmoid
    input_dropout: float = 0.0
    hidden_dropout: float = 0.0


# ----------------------------------------------------------
# Gradient optimizer configuration
# ----------------------------------------------------------
@dataclass
class OptimizerConfig:
    """PyTorch optimizer plus L1/L2 penalties.
    defaults to Adam(lr=1e-3).
    """

    name: str = "adam"  # adam | sgd | rmsprop
    lr: float = 1e-3
    momentum: float = 0.0

    # penalties added to the loss
    l1: float = 0.0
    l2: float = 0.0


# ----------------------------------------------------------
# TrainConfig
# ----------------------------------------------------------
@dataclass
class TrainConfig:
    """Top-level training configuration for the torch backend."""

    # Device / reproducibility
    device: str = "cpu"
    seed: Optional[int] = None

    # Loop
    epochs: int = 10
    batch_size: int = 64
    score_every: int = 1  # epochs between scoring checkpoints

    task: str = "classification"  # or "regression"

    model_config: ModelConfig = field(default_factory=ModelConfig)
    optimizer_config: OptimizerConfig = field(default_factory=OptimizerConfig)

    def validate(self) -> None:
        if self.epochs < 1:
            raise ValueError("epochs must be >= 1")
        if self.score_every < 1:
            raise ValueError("score_every must be >= 1")
        if self.batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        if self.task not in ("classification", "regression"):
            raise ValueError("task must be 'classification' or 'regression'")
        for name in ("input_dropout", "hidden_dropout"):
            value = getattr(self.model_config, name)
            if not 0.0 <= value < 1.0:
                raise ValueError(f"{name} must be in [0, 1)")
