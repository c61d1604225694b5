from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np
import torch
from torch.utils.data import TensorDataset, DataLoader
from sklearn.model_selection import train_test_split
from sklearn.preprocessing import LabelEncoder, MinMaxScaler, StandardScaler


@dataclass
class Table:
    """A tabular dataset split into a feature matrix and a target vector."""

    X: np.ndarray
    y: np.ndarray
    feature_names: List[str]
    classes: np.ndarray | None = None  # original labels when the target was text


def load_table(path: str, target: str, *, delimiter: str = ",") -> Table:
    """
    Read a CSV file with a header row.

    Text feature columns are label-encoded; a text target column is
    encoded as integer classes and the original labels are kept in
    ``Table.classes``.
    """
    table = np.genfromtxt(
        path,
        delimiter=delimiter,
        names=True,
        dtype=None,
        encoding="utf-8",
        autostrip=True,
    )
    table = np.atleast_1d(table)
    names = table.dtype.names or ()
    if target not in names:
        raise ValueError(f"target column '{target}' not found in {list(names)}")

    features = []
    feature_names = []
    for name in names:
        if name == target:
            continue
        column = table[name]
        if column.dtype.kind in "USO":
            column = LabelEncoder().fit_transform(column.astype(str))
        features.append(np.asarray(column, dtype=np.float32))
        feature_names.append(name)
    if not features:
        raise ValueError("table has no feature columns")

    y_raw = table[target]
    classes = None
    if y_raw.dtype.kind in "USO":
        encoder = LabelEncoder()
        y = encoder.fit_transform(y_raw.astype(str))
        classes = encoder.classes_
    else:
        y = np.asarray(y_raw)

    return Table(X=np.column_stack(features), y=y, feature_names=feature_names, classes=classes)


def split_data(
    X,
    y,
    ratios: Sequence[float] = (0.6, 0.2),
    *,
    seed: int | None = None,
    stratify: bool = False,
) -> Tuple[Tuple[np.ndarray, np.ndarray], ...]:
    """
    Split into train / validation / test partitions.

    ``ratios`` gives the train and validation fractions; the test
    partition receives the remainder.

    Returns:
        (X_train, y_train), (X_valid, y_valid), (X_test, y_test)
    """
    train_ratio, valid_ratio = ratios
    if train_ratio <= 0 or valid_ratio <= 0 or train_ratio + valid_ratio >= 1:
        raise ValueError("ratios must be positive and sum to less than 1")

    X = np.asarray(X)
    y = np.asarray(y)

    test_size = 1.0 - train_ratio - valid_ratio
    X_rest, X_test, y_rest, y_test = train_test_split(
        X, y, test_size=test_size, random_state=seed, stratify=y if stratify else None
    )
    valid_size = valid_ratio / (train_ratio + valid_ratio)
    X_train, X_valid, y_train, y_valid = train_test_split(
        X_rest,
        y_rest,
        test_size=valid_size,
        random_state=seed,
        stratify=y_rest if stratify else None,
    )
    return (X_train, y_train), (X_valid, y_valid), (X_test, y_test)


def _target_tensor(y, task: str) -> torch.Tensor:
    y = torch.as_tensor(np.asarray(y))
    if task == "regression":
        return y.float().view(-1, 1)
    return y.long().view(-1)


def to_loader(
    X,
    y,
    *,
    batch_size: int = 64,
    shuffle: bool = False,
    task: str = "classification",
    scaler=None,
) -> DataLoader:
    """Wrap arrays in a DataLoader, applying a fitted scaler if given."""
    X = np.asarray(X, dtype=np.float32)
    if scaler is not None:
        X = scaler.transform(X).astype(np.float32)
    ds = TensorDataset(torch.from_numpy(X), _target_tensor(y, task))
    return DataLoader(ds, batch_size=batch_size, shuffle=shuffle)


def make_loaders(
    train,
    valid,
    *,
    batch_size: int = 64,
    valid_batch_size: int | None = None,
    shuffle: bool = True,
    task: str = "classification",
    normalize: str | None = None,  # None | "standard" | "minmax"
    return_scaler: bool = False,
):
    """
    Create train and validation DataLoaders from ``(X, y)`` pairs.

    Args:
        train, valid: (X, y) pairs of numpy arrays, e.g. from split_data
        batch_size: training batch size
        valid_batch_size: validation batch size (defaults to batch_size)
        shuffle: shuffle training data
        task: "classification" (integer targets) or "regression"
        normalize: optional normalization fitted on the training split:
            - None      (no scaling)
            - "standard" (mean=0, std=1)
            - "minmax"  (scaled to [0, 1])
        return_scaler: if True, return (train_loader, valid_loader, scaler)
    """
    X_train, y_train = train
    X_valid, y_valid = valid

    scaler = None
    if normalize is not None:
        if normalize == "standard":
            scaler = StandardScaler()
        elif normalize == "minmax":
            scaler = MinMaxScaler()
        else:
            raise ValueError("normalize must be None, 'standard', or 'minmax'")
        scaler.fit(np.asarray(X_train, dtype=np.float32))

    if valid_batch_size is None:
        valid_batch_size = batch_size

    train_loader = to_loader(
        X_train, y_train, batch_size=batch_size, shuffle=shuffle, task=task, scaler=scaler
    )
    valid_loader = to_loader(
        X_valid, y_valid, batch_size=valid_batch_size, task=task, scaler=scaler
    )

    if return_scaler:
        return train_loader, valid_loader, scaler

    return train_loader, valid_loader
