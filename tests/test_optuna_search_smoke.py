import optuna
import pytest

from hpsearch import (
    Categorical,
    GridMode,
    HyperparameterSpace,
    IntRange,
    FloatRange,
    InvalidSpaceError,
    OptunaSearch,
    RandomMode,
    SearchExhaustedError,
    StoppingPolicy,
)

optuna.logging.set_verbosity(optuna.logging.WARNING)


def make_space():
    return HyperparameterSpace([
        Categorical("hidden", [[4], [8, 4], [16]]),
        IntRange("epochs", 1, 2),
    ])


def train_fn(candidate):
    width = sum(candidate["hidden"])
    for epoch in range(candidate["epochs"]):
        yield width * 10 + epoch


def test_optuna_grid_covers_every_candidate():
    search = OptunaSearch.from_mode(
        make_space(), GridMode(), train_fn, float, StoppingPolicy(patience=0)
    )

    result = search.run(n_trials=6)

    assert len(result.results) == 6
    assert result.best.params == {"hidden": [16], "epochs": 2}
    assert search.best_value == pytest.approx(161.0)
    assert search.best_params == {"hidden": [16], "epochs": 2}


def test_optuna_reports_checkpoints():
    search = OptunaSearch.from_mode(make_space(), GridMode(), train_fn, float)
    search.run(n_trials=6)

    trial = search.study.best_trial
    assert trial.intermediate_values == {0: 160.0, 1: 161.0}
    assert trial.user_attrs["status"] == "converged"


def test_optuna_random_with_continuous_params():
    space = HyperparameterSpace([FloatRange("lr", 1e-4, 1e-1, log=True)])
    search = OptunaSearch.from_mode(
        space, RandomMode(5, seed=0), lambda c: c["lr"], float, comparison="minimize"
    )

    result = search.run(n_trials=5)

    assert len(result.results) == 5
    assert result.comparison == "minimize"
    assert result.best.score == pytest.approx(min(r.score for r in result.results))


def test_optuna_all_failed_trials_exhaust():
    def failing(candidate):
        raise RuntimeError("boom")

    search = OptunaSearch.from_mode(make_space(), RandomMode(3, seed=0), failing, float)

    with pytest.raises(SearchExhaustedError):
        search.run(n_trials=3)


def test_optuna_checks_accepted_names_before_creating_study():
    with pytest.raises(InvalidSpaceError, match="epochs"):
        OptunaSearch.from_mode(make_space(), GridMode(), train_fn, float, accepted={"hidden"})


def test_each_run_reports_only_its_own_trials():
    space = HyperparameterSpace([FloatRange("lr", 1e-4, 1e-1, log=True)])
    search = OptunaSearch.from_mode(space, RandomMode(5, seed=0), lambda c: c["lr"], float)

    first = search.run(n_trials=3)
    second = search.run(n_trials=2)

    assert len(first.results) == 3
    assert len(second.results) == 2
    assert {r.index for r in second.results} == {3, 4}
    assert len(search.study.trials) == 5
