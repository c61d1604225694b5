import pytest

from hpsearch import (
    GridMode,
    HyperparameterSpace,
    InvalidSpaceError,
    TrainConfig,
    TrainConfigBuilder,
    generate_candidates,
    run_search,
)


def test_with_overrides_applies_dotted_paths_to_a_copy():
    base = TrainConfig(epochs=20)
    builder = TrainConfigBuilder(base)

    cfg = builder.with_overrides({"epochs": 50, "optimizer_config.lr": 0.01})

    assert cfg.epochs == 50
    assert cfg.optimizer_config.lr == 0.01
    assert base.epochs == 20
    assert base.optimizer_config.lr == 1e-3


def test_unknown_override_path_raises():
    builder = TrainConfigBuilder(TrainConfig())
    with pytest.raises(AttributeError):
        builder.with_overrides({"optimizer_config.momentun": 0.9})


def test_validate_space_rejects_unknown_parameters():
    builder = TrainConfigBuilder(TrainConfig())

    builder.validate_space(HyperparameterSpace({
        "epochs": [5, 10],
        "model_config.hidden": [[16], [32, 32]],
    }))

    with pytest.raises(InvalidSpaceError, match="model_config.hiden"):
        builder.validate_space(HyperparameterSpace({"model_config.hiden": [[16]]}))


def test_with_candidate_does_not_share_values():
    space = HyperparameterSpace({"model_config.hidden": [[16, 16]], "epochs": [1, 2]})
    builder = TrainConfigBuilder(TrainConfig())
    first, second = generate_candidates(space, GridMode())

    cfg = builder.with_candidate(first)
    cfg.model_config.hidden.append(8)

    assert builder.with_candidate(second).model_config.hidden == [16, 16]


def test_wrap_feeds_configs_to_training():
    builder = TrainConfigBuilder(TrainConfig())
    seen = []

    def train(cfg):
        seen.append(cfg)
        return cfg.epochs

    result = run_search({"epochs": [3, 7]}, GridMode(), builder.wrap(train), float)

    assert [cfg.epochs for cfg in seen] == [3, 7]
    assert result.best.params == {"epochs": 7}


def test_wrapped_train_fn_rejects_misspelled_space():
    builder = TrainConfigBuilder(TrainConfig())
    seen = []

    with pytest.raises(InvalidSpaceError, match="optimizer_config.lrr"):
        run_search(
            {"optimizer_config.lrr": [0.1, 0.01]}, GridMode(), builder.wrap(seen.append), float
        )
    assert seen == []
