"""
Walkthrough: grid and random search over MLP classifiers.

1. import a tabular dataset and split it into train / valid / test
2. grid search over network shape and learning rate with early stopping
3. random search over dropout and L1/L2 penalties
4. score the best model on the test split, predict, save and reload it

Tuning notes
------------
* Start small: one or two hidden layers and a few epochs show quickly
  whether the data is learnable at all.
* Early stopping on a moving average (window > 1) is less sensitive to
  noisy validation scores than on single checkpoints.
* Dropout and L1/L2 penalties mostly pay off on wide networks; search
  them after the shape is fixed.
* Log-scale learning-rate ranges cover orders of magnitude with few
  points; refine around the best value afterwards.
"""

import logging

from sklearn.datasets import load_breast_cancer

from hpsearch import (
    FloatRange,
    GridMode,
    HyperparameterSpace,
    RandomMode,
    SearchSession,
    StoppingPolicy,
    TrainConfig,
    run_search,
)
from hpsearch.backends import MLPBackend
from hpsearch.utils import make_loaders, plot_checkpoints, plot_search_results, split_data, to_loader


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    X, y = load_breast_cancer(return_X_y=True)
    train, valid, test = split_data(X, y, ratios=(0.6, 0.2), seed=1234, stratify=True)
    train_loader, valid_loader, scaler = make_loaders(
        train, valid, batch_size=32, normalize="standard", return_scaler=True
    )
    test_loader = to_loader(*test, batch_size=128, scaler=scaler)

    base = TrainConfig(seed=1234, epochs=30, batch_size=32)
    backend = MLPBackend(train_loader, valid_loader, base_config=base)

    # ------------------------------------------------------------------
    # Grid search: network shape and learning rate
    # ------------------------------------------------------------------
    grid_space = HyperparameterSpace({
        "model_config.hidden": [[16], [32, 32], [64, 64]],
        "model_config.activation": ["relu", "tanh"],
        "optimizer_config.lr": FloatRange("optimizer_config.lr", 1e-4, 1e-2, log=True, num=3),
    })

    policy = StoppingPolicy(metric="logloss", patience=3, min_delta=1e-3, window=2,
                            direction="minimize")

    with SearchSession(n_jobs=2) as session:
        grid = run_search(grid_space, GridMode(), backend.train_fn, backend.eval_fn,
                          policy, comparison="minimize", session=session)

    print("\nGrid search, best first:")
    for record in grid.to_records()[:5]:
        print(record)

    # ------------------------------------------------------------------
    # Random search: regularisation around the best shape
    # ------------------------------------------------------------------
    best_shape = grid.best_params
    random_space = HyperparameterSpace([
        FloatRange("model_config.hidden_dropout", 0.0, 0.5),
        FloatRange("optimizer_config.l1", 1e-6, 1e-3, log=True),
        FloatRange("optimizer_config.l2", 1e-6, 1e-3, log=True),
    ])
    tuned = MLPBackend(
        train_loader,
        valid_loader,
        base_config=backend.builder.with_overrides(best_shape),
    )
    rand = run_search(random_space, RandomMode(8, seed=42), tuned.train_fn, tuned.eval_fn,
                      policy, comparison="minimize")

    best = rand.best
    print(f"\nRandom search best #{best.index}: {best.params} logloss={best.score:.4f} "
          f"({best.status.value} after {best.checkpoints} epochs)")

    # ------------------------------------------------------------------
    # Test score, prediction, persistence
    # ------------------------------------------------------------------
    print("Test metrics:", tuned.score(best.model, test_loader))

    labels, probs = tuned.predict(best.model, scaler.transform(test[0][:5]))
    print("First predictions:", labels, probs[:, 1].round(3))

    cfg = tuned.config_for(best.candidate)
    path = tuned.save_model(best.model, cfg, "models/best_mlp.pt")
    reloaded, _ = MLPBackend.load_model(path)
    print("Reloaded test metrics:", tuned.score(reloaded, test_loader))

    plot_search_results(grid)
    plot_checkpoints(grid, top=5)


if __name__ == "__main__":
    main()
