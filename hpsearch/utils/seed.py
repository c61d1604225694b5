from __future__ import annotations

import random
from dataclasses import dataclass

import numpy as np
import torch


def set_seed(seed: int) -> None:
    """Seed python, numpy and torch globally, for scripts running one model."""
    random.seed(seed)
    np.random.seed(seed)
    torch.manual_seed(seed)


def resolve_seed(seed: int | None) -> int:
    """Return ``seed``, or fresh OS entropy when it is None."""
    if seed is not None:
        return int(seed)
    return int(np.random.SeedSequence().generate_state(1)[0])


@dataclass
class RunGenerators:
    """Random streams owned by one training run.

    ``init`` draws the initial weights and ``shuffle`` orders the training
    batches, both on the CPU; ``dropout`` draws dropout masks on the
    training device.
    """

    seed: int
    init: torch.Generator
    shuffle: torch.Generator
    dropout: torch.Generator


def run_generators(seed: int | None, device: str | torch.device = "cpu") -> RunGenerators:
    seed = resolve_seed(seed)
    return RunGenerators(
        seed=seed,
        init=torch.Generator().manual_seed(seed),
        shuffle=torch.Generator().manual_seed(seed + 1),
        dropout=torch.Generator(device=torch.device(device)).manual_seed(seed + 2),
    )
