"""
Streaming validation metrics for the torch backend.

Each metric is fed ``(preds, target)`` batches and reduces them at the
end, so scoring a model never holds a whole validation set of logits.
``preds`` are raw network outputs: class logits for classification, a
single column for regression.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from typing import Dict

import torch


class Metric(ABC):
    """Simple streaming metric API: reset -> update -> compute."""

    def __init__(self, name: str):
        self.name = name
        self.reset()

    @abstractmethod
    def reset(self) -> None: ...

    @abstractmethod
    def update(self, preds: torch.Tensor, target: torch.Tensor) -> None: ...

    @abstractmethod
    def compute(self) -> float: ...


def predicted_labels(preds: torch.Tensor) -> torch.Tensor:
    """Class labels from logits (argmax) or a single probability column."""
    preds = preds.detach()
    if preds.ndim > 1 and preds.size(-1) > 1:
        return preds.argmax(dim=-1)
    return (preds.view(-1) >= 0.5).long()


# ----------------------------------------------------------
# Regression
# ----------------------------------------------------------
class MSE(Metric):
    def __init__(self):
        super().__init__(name="mse")

    def reset(self) -> None:
        self._sum_sq = 0.0
        self._n = 0

    def update(self, preds: torch.Tensor, target: torch.Tensor) -> None:
        diff = preds.detach().view(-1) - target.detach().view(-1).float()
        self._sum_sq += float(diff.pow(2).sum().item())
        self._n += diff.numel()

    def compute(self) -> float:
        return self._sum_sq / max(self._n, 1)


class R2(Metric):
    """Coefficient of determination against the mean of all targets seen."""

    def __init__(self):
        super().__init__(name="r2")

    def reset(self) -> None:
        self._targets = []
        self._preds = []

    def update(self, preds: torch.Tensor, target: torch.Tensor) -> None:
        self._targets.append(target.detach().view(-1).float().cpu())
        self._preds.append(preds.detach().view(-1).float().cpu())

    def compute(self) -> float:
        if not self._targets:
            return 0.0
        y = torch.cat(self._targets)
        residual = torch.cat(self._preds) - y
        total = float((y - y.mean()).pow(2).sum().item())
        if total == 0.0:
            return 0.0
        return 1.0 - float(residual.pow(2).sum().item()) / total


# ----------------------------------------------------------
# Classification
# ----------------------------------------------------------
class Accuracy(Metric):
    def __init__(self):
        super().__init__(name="accuracy")

    def reset(self) -> None:
        self._hits = 0
        self._seen = 0

    def update(self, preds: torch.Tensor, target: torch.Tensor) -> None:
        labels = predicted_labels(preds)
        self._hits += int(labels.eq(target.detach().view_as(labels).long()).sum().item())
        self._seen += labels.numel()

    def compute(self) -> float:
        return self._hits / self._seen if self._seen else 0.0


class LogLoss(Metric):
    """Mean negative log-likelihood of the true class, from logits."""

    def __init__(self):
        super().__init__(name="logloss")

    def reset(self) -> None:
        self._total = 0.0
        self._n = 0

    def update(self, preds: torch.Tensor, target: torch.Tensor) -> None:
        log_probs = torch.log_softmax(preds.detach().float(), dim=-1)
        y = target.detach().view(-1).long()
        nll = -log_probs.gather(1, y.unsqueeze(1)).squeeze(1)
        self._total += float(nll.sum().item())
        self._n += int(y.numel())

    def compute(self) -> float:
        if self._n == 0:
            return math.inf
        return self._total / self._n


class F1(Metric):
    """Macro-F1 over the classes present in the targets.

    Batches are folded into a confusion matrix that grows as new classes
    appear.
    """

    def __init__(self, eps: float = 1e-8):
        self.eps = eps
        super().__init__(name="f1")

    def reset(self) -> None:
        self._confusion = torch.zeros((0, 0), dtype=torch.long)

    def update(self, preds: torch.Tensor, target: torch.Tensor) -> None:
        true = target.detach().view(-1).long().cpu()
        pred = predicted_labels(preds).view(-1).long().cpu()
        if true.numel() == 0:
            return

        size = max(self._confusion.size(0), int(true.max()) + 1, int(pred.max()) + 1)
        if size > self._confusion.size(0):
            grown = torch.zeros((size, size), dtype=torch.long)
            old = self._confusion.size(0)
            grown[:old, :old] = self._confusion
            self._confusion = grown

        flat = torch.bincount(true * size + pred, minlength=size * size)
        self._confusion += flat.view(size, size)

    def compute(self) -> float:
        cm = self._confusion
        if cm.numel() == 0:
            return 0.0
        tp = cm.diag().double()
        support = cm.sum(dim=1)
        fp = cm.sum(dim=0).double() - tp
        fn = support.double() - tp

        present = support > 0
        denom = 2 * tp + fp + fn
        scores = torch.where(denom > 0, 2 * tp / (denom + self.eps), torch.zeros_like(tp))
        return float(scores[present].mean().item())


BUILTIN_METRICS: Dict[str, type[Metric]] = {
    "mse": MSE,
    "r2": R2,
    "accuracy": Accuracy,
    "logloss": LogLoss,
    "f1": F1,
}


def build_metric(name: str) -> Metric:
    cls = BUILTIN_METRICS.get(name)
    if cls is None:
        raise ValueError(f"Unknown metric '{name}'")
    return cls()
