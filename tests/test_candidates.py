import math

import pytest

from hpsearch import (
    Categorical,
    FloatRange,
    GridMode,
    HyperparameterSpace,
    IntRange,
    InvalidSpaceError,
    RandomMode,
    generate_candidates,
)


def make_space():
    return HyperparameterSpace([
        Categorical("activation", ["relu", "tanh"]),
        IntRange("epochs", 5, 15, step=5),
        FloatRange("lr", 1e-3, 1e-1, log=True, num=2),
    ])


# ----------------------------------------------------------------------
# Grid generation
# ----------------------------------------------------------------------
def test_grid_yields_full_cross_product():
    space = make_space()
    candidates = list(generate_candidates(space, GridMode()))

    assert len(candidates) == 2 * 3 * 2
    assert len({c.values for c in candidates}) == len(candidates)
    assert space.grid_size() == 12


def test_grid_last_parameter_varies_fastest():
    space = HyperparameterSpace({"a": [1, 2], "b": ["x", "y", "z"]})
    params = [c.params for c in generate_candidates(space, "grid")]

    assert params[:4] == [
        {"a": 1, "b": "x"},
        {"a": 1, "b": "y"},
        {"a": 1, "b": "z"},
        {"a": 2, "b": "x"},
    ]
    assert [c.index for c in generate_candidates(space, "grid")] == list(range(6))


def test_grid_is_idempotent_and_restartable():
    space = make_space()
    seq = generate_candidates(space, GridMode())

    first = [c.values for c in seq]
    second = [c.values for c in seq]
    again = [c.values for c in generate_candidates(space, GridMode())]

    assert first == second == again


def test_grid_random_access_matches_iteration():
    seq = generate_candidates(make_space(), GridMode())
    listed = list(seq)

    for i in range(len(seq)):
        assert seq[i] == listed[i]
        assert seq[i].index == i
    assert seq[-1] == listed[-1]
    with pytest.raises(IndexError):
        seq[len(seq)]


def test_float_grid_points():
    p = FloatRange("lr", 1e-4, 1e-2, log=True, num=3)
    values = p.grid_values()
    assert len(values) == 3
    assert math.isclose(values[1], 1e-3)

    linear = FloatRange("dropout", 0.0, 0.5, num=3).grid_values()
    assert linear == pytest.approx((0.0, 0.25, 0.5))


def test_int_range_grid_includes_high():
    assert IntRange("units", 8, 32, step=8).grid_values() == (8, 16, 24, 32)


# ----------------------------------------------------------------------
# Random generation
# ----------------------------------------------------------------------
def test_random_yields_exactly_n():
    seq = generate_candidates(make_space(), RandomMode(25, seed=0))
    candidates = list(seq)

    assert len(seq) == 25
    assert len(candidates) == 25
    assert [c.index for c in candidates] == list(range(25))


def test_random_values_in_domain():
    space = HyperparameterSpace([
        FloatRange("lr", 1e-4, 1e-1, log=True),
        FloatRange("dropout", 0.0, 0.5),
        IntRange("units", 4, 20, step=4),
        Categorical("act", ["relu", "tanh"]),
    ])
    for c in generate_candidates(space, RandomMode(50, seed=3)):
        assert 1e-4 <= c["lr"] <= 1e-1
        assert 0.0 <= c["dropout"] <= 0.5
        assert c["units"] in (4, 8, 12, 16, 20)
        assert c["act"] in ("relu", "tanh")


def test_random_is_restartable_without_seed():
    seq = generate_candidates(make_space(), RandomMode(10))
    assert [c.values for c in seq] == [c.values for c in seq]


def test_random_seed_reproducible():
    a = generate_candidates(make_space(), RandomMode(10, seed=7))
    b = generate_candidates(make_space(), RandomMode(10, seed=7))
    assert [c.values for c in a] == [c.values for c in b]


def test_random_mode_allows_continuous_params():
    space = HyperparameterSpace([FloatRange("lr", 0.01, 0.1)])
    assert len(list(generate_candidates(space, RandomMode(3, seed=0)))) == 3


# ----------------------------------------------------------------------
# Malformed spaces
# ----------------------------------------------------------------------
@pytest.mark.parametrize(
    "build",
    [
        lambda: Categorical("a", []),
        lambda: Categorical("a", "abc"),
        lambda: Categorical("", [1]),
        lambda: IntRange("a", 5, 1),
        lambda: IntRange("a", 1, 5, step=0),
        lambda: IntRange("a", 1.5, 5),
        lambda: FloatRange("a", 1.0, 0.0),
        lambda: FloatRange("a", 0.0, 1.0, log=True),
        lambda: FloatRange("a", 0.0, float("inf")),
        lambda: FloatRange("a", 0.0, 1.0, num=0),
        lambda: FloatRange("a", 0.5, 0.5, num=3),
        lambda: Categorical("a", [1, 1]),
        lambda: Categorical("hidden", [[8], [16], [8]]),
        lambda: HyperparameterSpace([]),
        lambda: HyperparameterSpace({"a": []}),
        lambda: HyperparameterSpace([Categorical("a", [1]), Categorical("a", [2])]),
        lambda: HyperparameterSpace({"a": Categorical("b", [1])}),
        lambda: RandomMode(0),
    ],
)
def test_malformed_declarations_raise(build):
    with pytest.raises(InvalidSpaceError):
        build()


def test_grid_over_continuous_param_raises():
    space = HyperparameterSpace([FloatRange("lr", 0.01, 0.1)])
    with pytest.raises(InvalidSpaceError):
        generate_candidates(space, GridMode())


def test_unknown_mode_raises():
    with pytest.raises(InvalidSpaceError):
        generate_candidates({"a": [1]}, "exhaustive")
    with pytest.raises(InvalidSpaceError):
        generate_candidates({"a": [1]}, "random")


def test_invalid_space_error_is_value_error():
    with pytest.raises(ValueError):
        Categorical("a", [])


def test_check_contract_names_unknown_params():
    space = HyperparameterSpace({"epochs": [1], "lr": [0.1], "bogus": [1]})
    space.check_contract({"epochs", "lr", "bogus"})
    with pytest.raises(InvalidSpaceError, match="bogus"):
        space.check_contract(["epochs", "lr"])


# ----------------------------------------------------------------------
# Candidate values are never shared
# ----------------------------------------------------------------------
def test_candidate_params_are_copies():
    space = HyperparameterSpace({"hidden": [[8, 8]], "seed": [1, 2]})
    first, second = list(generate_candidates(space, "grid"))

    params = first.params
    params["hidden"].append(99)
    first["hidden"].append(99)

    assert first["hidden"] == [8, 8]
    assert second["hidden"] == [8, 8]


def test_grid_candidates_are_distinct_combinations():
    with pytest.raises(InvalidSpaceError):
        generate_candidates(
            HyperparameterSpace([Categorical("a", [1, 1]), FloatRange("b", 0.5, 0.5, num=3)]),
            GridMode(),
        )

    space = HyperparameterSpace([
        Categorical("a", [1, 2]),
        FloatRange("b", 0.5, 0.5, num=1),
        FloatRange("c", 1e-3, 1e-1, log=True, num=3),
    ])
    candidates = list(generate_candidates(space, GridMode()))
    assert len(candidates) == space.grid_size() == 6
    assert len({c.values for c in candidates}) == 6


def test_float_grid_collision_raises():
    p = FloatRange("eps", 1.0, 1.0 + 1e-15, num=10)
    with pytest.raises(InvalidSpaceError, match="collide"):
        p.grid_values()
