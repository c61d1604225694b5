import dataclasses

import pytest

from hpsearch import (
    Candidate,
    EvaluationStatus,
    GridMode,
    HyperparameterSpace,
    InvalidSpaceError,
    RandomMode,
    SearchExhaustedError,
    StoppingPolicy,
    TrainingFailure,
    evaluate,
    run_search,
)


def score_table(scores):
    """train_fn returning the candidate's "id"; eval_fn looking up its score."""

    def train_fn(candidate):
        return candidate["id"]

    def eval_fn(model):
        return scores[model]

    return train_fn, eval_fn


# ----------------------------------------------------------------------
# evaluate
# ----------------------------------------------------------------------
def test_single_handle_is_one_checkpoint():
    candidate = Candidate(values=(("id", 0),))
    train_fn, eval_fn = score_table([0.7])

    result = evaluate(candidate, train_fn, eval_fn, StoppingPolicy(patience=2))

    assert result.status is EvaluationStatus.CONVERGED
    assert result.checkpoints == 1
    assert result.score == pytest.approx(0.7)
    assert result.model == 0
    assert result.duration >= 0.0


def test_mapping_metric_selected_by_policy():
    candidate = Candidate(values=(("id", 0),))

    result = evaluate(
        candidate,
        lambda c: "model",
        lambda m: {"accuracy": 0.8, "logloss": 0.4},
        StoppingPolicy(metric="logloss", direction="minimize"),
    )

    assert result.score == pytest.approx(0.4)
    assert dict(result.metrics) == {"accuracy": 0.8, "logloss": 0.4}


def test_train_failure_is_tagged_with_candidate():
    candidate = Candidate(values=(("id", 3),), index=3)

    def train_fn(c):
        raise RuntimeError("out of memory")

    with pytest.raises(TrainingFailure) as info:
        evaluate(candidate, train_fn, lambda m: 1.0)

    failure = info.value
    assert failure.candidate == candidate
    assert failure.candidate.index == 3
    assert failure.checkpoint == -1
    assert isinstance(failure.__cause__, RuntimeError)
    assert "out of memory" in str(failure)


def test_eval_failure_mid_training_reports_checkpoint():
    candidate = Candidate(values=(("id", 0),))

    def train_fn(c):
        yield from range(5)

    def eval_fn(model):
        if model == 2:
            raise ValueError("bad partition")
        return 0.5

    with pytest.raises(TrainingFailure) as info:
        evaluate(candidate, train_fn, eval_fn)
    assert info.value.checkpoint == 2


@pytest.mark.parametrize(
    "eval_fn",
    [
        lambda m: float("nan"),
        lambda m: {"logloss": 0.3},
        lambda m: "not a number",
    ],
)
def test_unusable_metric_is_a_failure(eval_fn):
    candidate = Candidate(values=(("id", 0),))
    with pytest.raises(TrainingFailure):
        evaluate(candidate, lambda c: "model", eval_fn, StoppingPolicy(metric="accuracy"))


def test_empty_training_is_a_failure():
    candidate = Candidate(values=(("id", 0),))
    with pytest.raises(TrainingFailure):
        evaluate(candidate, lambda c: iter(()), lambda m: 1.0)


# ----------------------------------------------------------------------
# run_search
# ----------------------------------------------------------------------
def test_best_selection_tie_goes_to_first_generated():
    train_fn, eval_fn = score_table([0.5, 0.9, 0.9, 0.1])
    result = run_search({"id": [0, 1, 2, 3]}, GridMode(), train_fn, eval_fn)

    assert result.best.index == 1
    assert result.best_score == pytest.approx(0.9)
    assert [r.index for r in result.ranked()] == [1, 2, 0, 3]


def test_minimize_comparison():
    train_fn, eval_fn = score_table([0.5, 0.2, 0.2, 0.9])
    result = run_search({"id": [0, 1, 2, 3]}, "grid", train_fn, eval_fn, comparison="minimize")

    assert result.best.index == 1
    assert result.best_params == {"id": 1}
    assert result.ranked()[-1].index == 3


def test_failures_are_isolated():
    scores = [0.3, None, 0.6, None]

    def train_fn(candidate):
        if scores[candidate["id"]] is None:
            raise RuntimeError("diverged")
        return candidate["id"]

    result = run_search({"id": [0, 1, 2, 3]}, GridMode(), train_fn, lambda m: scores[m])

    assert [r.index for r in result.results] == [0, 2]
    assert [f.candidate.index for f in result.failures] == [1, 3]
    assert result.best.index == 2
    assert len(result) == 2


def test_all_failures_exhaust_the_search():
    def train_fn(candidate):
        raise RuntimeError("cluster unavailable")

    with pytest.raises(SearchExhaustedError) as info:
        run_search({"id": [0, 1, 2]}, GridMode(), train_fn, lambda m: 1.0)

    assert len(info.value.failures) == 3
    assert all(isinstance(f.__cause__, RuntimeError) for f in info.value.failures)


def test_malformed_space_fails_before_training():
    calls = []

    def train_fn(candidate):
        calls.append(candidate)
        return 0

    with pytest.raises(InvalidSpaceError):
        run_search({"id": [0], "lr": []}, GridMode(), train_fn, lambda m: 1.0)
    assert calls == []


def test_invalid_comparison():
    with pytest.raises(ValueError):
        run_search({"id": [0]}, GridMode(), lambda c: 0, lambda m: 1.0, comparison="best")


def test_random_search_evaluates_n_candidates():
    space = HyperparameterSpace({"id": [0, 1, 2]})
    train_fn, eval_fn = score_table([0.1, 0.2, 0.3])

    result = run_search(space, RandomMode(7, seed=1), train_fn, eval_fn)

    assert len(result.results) == 7
    assert result.best.score == pytest.approx(max(r.score for r in result.results))


def test_early_stopping_applies_per_candidate():
    curves = {
        0: [0.5, 0.6, 0.7, 0.8],
        1: [0.5, 0.5, 0.5, 0.5],
    }

    def train_fn(candidate):
        for step in range(4):
            yield (candidate["id"], step)

    def eval_fn(model):
        cid, step = model
        return curves[cid][step]

    policy = StoppingPolicy(patience=2, min_delta=0.01)
    result = run_search({"id": [0, 1]}, GridMode(), train_fn, eval_fn, policy)

    first, second = result.results
    assert first.status is EvaluationStatus.CONVERGED
    assert second.status is EvaluationStatus.STOPPED_EARLY
    assert second.checkpoints == 3
    assert result.best.index == 0


# ----------------------------------------------------------------------
# Immutability
# ----------------------------------------------------------------------
def test_results_are_not_mutated_by_later_candidates():
    def train_fn(candidate):
        params = candidate.params
        params["hidden"].append(candidate["id"])
        return params["hidden"]

    result = run_search(
        {"hidden": [[8]], "id": [1, 2, 3]},
        GridMode(),
        train_fn,
        lambda model: float(sum(model)),
    )

    assert [r.model for r in result.results] == [[8, 1], [8, 2], [8, 3]]
    assert [r.candidate["hidden"] for r in result.results] == [[8], [8], [8]]

    first = result.results[0]
    with pytest.raises(dataclasses.FrozenInstanceError):
        first.score = 0.0
    with pytest.raises(TypeError):
        first.metrics["accuracy"] = 0.0
    assert isinstance(first.history, tuple)


def test_to_records_is_ranked():
    train_fn, eval_fn = score_table([0.2, 0.8])
    records = run_search({"id": [0, 1]}, GridMode(), train_fn, eval_fn).to_records()

    assert [r["id"] for r in records] == [1, 0]
    assert records[0]["status"] == "converged"


# ----------------------------------------------------------------------
# Space contract
# ----------------------------------------------------------------------
def test_accepted_names_checked_before_training():
    calls = []

    def train_fn(candidate):
        calls.append(candidate)
        return 0

    with pytest.raises(InvalidSpaceError, match="lrr"):
        run_search(
            {"lrr": [0.1, 0.01], "epochs": [1]},
            GridMode(),
            train_fn,
            lambda m: 1.0,
            accepted={"lr", "epochs"},
        )
    assert calls == []


def test_owner_validate_space_is_used():
    class Trainer:
        def __init__(self):
            self.calls = 0

        def validate_space(self, space):
            space.check_contract({"lr"})

        def train_fn(self, candidate):
            self.calls += 1
            return candidate["lr"]

    trainer = Trainer()
    with pytest.raises(InvalidSpaceError):
        run_search({"lrr": [0.1]}, GridMode(), trainer.train_fn, float)
    assert trainer.calls == 0

    result = run_search({"lr": [0.1, 0.2]}, GridMode(), trainer.train_fn, float)
    assert result.best_params == {"lr": 0.2}


def test_validator_callable_may_reject_space():
    def only_small(space):
        if space.grid_size() > 2:
            raise InvalidSpaceError("grid too large")

    with pytest.raises(InvalidSpaceError, match="too large"):
        run_search({"id": [0, 1, 2]}, GridMode(), lambda c: 0, float, accepted=only_small)
