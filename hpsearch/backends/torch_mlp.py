"""
PyTorch training backend for the search driver.

MLPBackend trains feed-forward classifiers (or regressors) on tabular data
held in DataLoaders. Its ``train_fn`` is a generator that yields the model
every ``score_every`` epochs, so the driver can score each checkpoint and
stop training early; its ``eval_fn`` scores a model on the validation
loader. Trained models can be used for prediction and saved to disk
together with the configuration that produced them.
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from pathlib import Path
from typing import Dict, Iterator, List, Sequence, Tuple

import numpy as np
import torch
from torch import nn
from torch.utils.data import DataLoader, RandomSampler

from ..config.schema import ModelConfig, OptimizerConfig, TrainConfig
from ..core.metrics import Metric, build_metric
from ..models import SimpleMLP
from ..search.builder import TrainConfigBuilder
from ..space.candidates import Candidate
from ..space.space import HyperparameterSpace
from ..utils.seed import run_generators

logger = logging.getLogger(__name__)

OPTIMIZERS = {
    "adam": torch.optim.Adam,
    "sgd": torch.optim.SGD,
    "rmsprop": torch.optim.RMSprop,
}


class MLPBackend:
    """
    Expose MLP training on fixed train/validation loaders as the
    ``train_fn``/``eval_fn`` pair used by ``run_search``.

    Parameters
    ----------
    train_loader, valid_loader:
        Loaders of ``(features, target)`` batches, for example from
        ``hpsearch.utils.make_loaders``. They are only read. Training
        batches the train loader's dataset by ``TrainConfig.batch_size``
        and shuffles it when the loader does, with a generator seeded from
        ``TrainConfig.seed``, so seeded candidates train identically
        whether run alone or on a pooled session.
    base_config:
        Configuration every candidate's values are applied to.
    metrics:
        Names of the metrics ``eval_fn`` reports besides ``"loss"``.
        Defaults to accuracy and logloss for classification, mse and r2
        for regression.
    input_dim, output_dim:
        Network shape; inferred from the training data when omitted.
    """

    def __init__(
        self,
        train_loader: DataLoader,
        valid_loader: DataLoader,
        base_config: TrainConfig | None = None,
        metrics: Sequence[str] | None = None,
        input_dim: int | None = None,
        output_dim: int | None = None,
    ) -> None:
        self.train_loader = train_loader
        self.valid_loader = valid_loader
        self.builder = TrainConfigBuilder(base_config or TrainConfig())
        task = self.builder.base_config.task

        if metrics is None:
            metrics = ("accuracy", "logloss") if task == "classification" else ("mse", "r2")
        self.metric_names = tuple(metrics)
        for name in self.metric_names:
            build_metric(name)

        self.input_dim = input_dim or self._infer_input_dim()
        self.output_dim = output_dim or self._infer_output_dim(task)

    # ------------------------------------------------------------------
    # Shape inference
    # ------------------------------------------------------------------
    def _first_batch(self):
        return next(iter(self.train_loader))

    def _infer_input_dim(self) -> int:
        x, _ = self._first_batch()
        return int(x.shape[1])

    def _infer_output_dim(self, task: str) -> int:
        if task == "regression":
            return 1
        tensors = getattr(self.train_loader.dataset, "tensors", None)
        if tensors is not None:
            y = tensors[1]
        else:
            y = torch.cat([t for _, t in self.train_loader])
        return int(y.max().item()) + 1

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------
    def config_for(self, candidate: Candidate) -> TrainConfig:
        cfg = self.builder.with_candidate(candidate)
        cfg.validate()
        return cfg

    def validate_space(self, space: HyperparameterSpace) -> None:
        """Reject parameters that do not name a TrainConfig attribute."""
        self.builder.validate_space(space)

    def build_model(self, cfg: TrainConfig) -> SimpleMLP:
        mc = cfg.model_config
        return SimpleMLP(
            input_dim=self.input_dim,
            hidden=list(mc.hidden),
            output_dim=self.output_dim,
            activation=mc.activation,
            input_dropout=mc.input_dropout,
            hidden_dropout=mc.hidden_dropout,
        )

    # ------------------------------------------------------------------
    # train_fn / eval_fn
    # ------------------------------------------------------------------
    def train_fn(self, candidate: Candidate) -> Iterator[SimpleMLP]:
        """Train one candidate, yielding the model at each scoring checkpoint."""
        cfg = self.config_for(candidate)
        return self._train(cfg)

    def _train(self, cfg: TrainConfig) -> Iterator[SimpleMLP]:
        # the run draws only from its own generators; nothing global
        rngs = run_generators(cfg.seed, cfg.device)
        device = torch.device(cfg.device)
        model = self.build_model(cfg)
        model.reset_parameters(rngs.init)
        model = model.to(device)
        model.set_dropout_generator(rngs.dropout)

        loader = self._batches(cfg, rngs.shuffle)
        opt_cfg = cfg.optimizer_config
        optimizer = self._make_optimizer(model, opt_cfg)
        loss_fn = self._loss_fn(cfg.task)

        for epoch in range(cfg.epochs):
            model.train()
            for x, y in loader:
                x = x.to(device)
                y = y.to(device)
                optimizer.zero_grad()
                loss = loss_fn(model(x), y) + self._penalty(model, opt_cfg)
                loss.backward()
                optimizer.step()

            last = epoch + 1 == cfg.epochs
            if (epoch + 1) % cfg.score_every == 0 or last:
                model.eval()
                yield model

    def _batches(self, cfg: TrainConfig, generator: torch.Generator) -> DataLoader:
        """A loader over the training data private to one run, batched by ``cfg``."""
        return DataLoader(
            self.train_loader.dataset,
            batch_size=cfg.batch_size,
            shuffle=isinstance(self.train_loader.sampler, RandomSampler),
            generator=generator,
        )

    def eval_fn(self, model: nn.Module) -> Dict[str, float]:
        """Score a model on the validation loader."""
        return self.score(model, self.valid_loader)

    def score(self, model: nn.Module, loader: DataLoader) -> Dict[str, float]:
        task = self.builder.base_config.task
        loss_fn = self._loss_fn(task)
        metrics: List[Metric] = [build_metric(name) for name in self.metric_names]
        device = next(model.parameters()).device

        model.eval()
        total_loss = 0.0
        n = 0
        with torch.no_grad():
            for x, y in loader:
                x = x.to(device)
                y = y.to(device)
                preds = model(x)
                total_loss += float(loss_fn(preds, y).item()) * len(y)
                n += len(y)
                for m in metrics:
                    m.update(preds, y)

        if n == 0:
            raise ValueError("cannot score on an empty loader")

        out = {m.name: float(m.compute()) for m in metrics}
        out["loss"] = total_loss / n
        return out

    # ------------------------------------------------------------------
    # Prediction
    # ------------------------------------------------------------------
    def predict(self, model: nn.Module, X) -> Tuple[np.ndarray, np.ndarray | None]:
        """
        Predict for a feature matrix.

        Returns ``(labels, probabilities)`` for classification and
        ``(values, None)`` for regression.
        """
        device = next(model.parameters()).device
        x = torch.as_tensor(np.asarray(X, dtype=np.float32), device=device)
        model.eval()
        with torch.no_grad():
            out = model(x)
        if self.builder.base_config.task == "regression":
            return out.view(-1).cpu().numpy(), None
        probs = torch.softmax(out, dim=-1)
        return probs.argmax(dim=-1).cpu().numpy(), probs.cpu().numpy()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    def save_model(self, model: nn.Module, config: TrainConfig, path) -> Path:
        """Write the weights and the configuration that produced them."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        torch.save(
            {
                "state_dict": model.state_dict(),
                "config": asdict(config),
                "input_dim": self.input_dim,
                "output_dim": self.output_dim,
            },
            path,
        )
        logger.info("saved model to %s", path)
        return path

    @staticmethod
    def load_model(path, map_location: str = "cpu") -> Tuple[SimpleMLP, TrainConfig]:
        checkpoint = torch.load(Path(path), map_location=map_location)
        raw = dict(checkpoint["config"])
        cfg = TrainConfig(
            **{k: v for k, v in raw.items() if k not in ("model_config", "optimizer_config")},
            model_config=ModelConfig(**raw["model_config"]),
            optimizer_config=OptimizerConfig(**raw["optimizer_config"]),
        )
        mc = cfg.model_config
        model = SimpleMLP(
            input_dim=checkpoint["input_dim"],
            hidden=list(mc.hidden),
            output_dim=checkpoint["output_dim"],
            activation=mc.activation,
            input_dropout=mc.input_dropout,
            hidden_dropout=mc.hidden_dropout,
        )
        model.load_state_dict(checkpoint["state_dict"])
        model.eval()
        return model, cfg

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _loss_fn(task: str) -> nn.Module:
        return nn.MSELoss() if task == "regression" else nn.CrossEntropyLoss()

    @staticmethod
    def _make_optimizer(model: nn.Module, cfg: OptimizerConfig) -> torch.optim.Optimizer:
        name = cfg.name.lower()
        if name not in OPTIMIZERS:
            raise ValueError(f"Unknown optimizer '{cfg.name}'")
        kwargs = {"lr": cfg.lr}
        if name in ("sgd", "rmsprop"):
            kwargs["momentum"] = cfg.momentum
        return OPTIMIZERS[name](model.parameters(), **kwargs)

    @staticmethod
    def _penalty(model: SimpleMLP, cfg: OptimizerConfig) -> torch.Tensor | float:
        if not cfg.l1 and not cfg.l2:
            return 0.0
        penalty = 0.0
        for layer in model.linear_layers():
            if cfg.l1:
                penalty = penalty + cfg.l1 * layer.weight.abs().sum()
            if cfg.l2:
                penalty = penalty + cfg.l2 * layer.weight.pow(2).sum()
        return penalty
