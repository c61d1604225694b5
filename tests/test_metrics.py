import math

import pytest
import torch
from sklearn.metrics import f1_score, log_loss, r2_score

from hpsearch.core.metrics import build_metric


def feed(metric, batches):
    for preds, target in batches:
        metric.update(preds, target)
    return metric.compute()


def test_accuracy_over_batches():
    logits = torch.tensor([[2.0, 0.1], [0.1, 2.0], [3.0, 0.0], [0.0, 1.0]])
    target = torch.tensor([0, 1, 1, 1])

    value = feed(build_metric("accuracy"), [(logits[:2], target[:2]), (logits[2:], target[2:])])

    assert value == pytest.approx(0.75)


def test_macro_f1_matches_sklearn():
    torch.manual_seed(0)
    logits = torch.randn(60, 3)
    target = torch.randint(0, 3, (60,))

    value = feed(build_metric("f1"), [(logits[:25], target[:25]), (logits[25:], target[25:])])

    expected = f1_score(target.numpy(), logits.argmax(dim=-1).numpy(), average="macro")
    assert value == pytest.approx(expected, abs=1e-6)


def test_f1_grows_with_new_classes():
    metric = build_metric("f1")
    metric.update(torch.tensor([[1.0, 0.0]]), torch.tensor([0]))
    metric.update(torch.tensor([[0.0, 0.0, 1.0]]), torch.tensor([2]))

    assert metric.compute() == pytest.approx(1.0)


def test_logloss_matches_sklearn():
    logits = torch.tensor([[1.0, 0.0, -1.0], [0.2, 0.3, 0.5], [-2.0, 1.0, 0.0]])
    target = torch.tensor([0, 2, 1])

    value = feed(build_metric("logloss"), [(logits, target)])

    probs = torch.softmax(logits, dim=-1).numpy()
    assert value == pytest.approx(log_loss(target.numpy(), probs, labels=[0, 1, 2]), rel=1e-5)


def test_regression_metrics():
    preds = torch.tensor([[1.0], [2.5], [2.0], [4.5]])
    target = torch.tensor([[1.0], [2.0], [3.0], [4.0]])
    batches = [(preds[:2], target[:2]), (preds[2:], target[2:])]

    assert feed(build_metric("mse"), batches) == pytest.approx(0.375)
    assert feed(build_metric("r2"), batches) == pytest.approx(
        r2_score(target.view(-1).numpy(), preds.view(-1).numpy())
    )


def test_empty_metrics():
    assert build_metric("accuracy").compute() == 0.0
    assert math.isinf(build_metric("logloss").compute())


def test_unknown_metric():
    with pytest.raises(ValueError):
        build_metric("auc")
