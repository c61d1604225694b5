from .schema import ModelConfig, OptimizerConfig, StoppingPolicy, TrainConfig

__all__ = ["StoppingPolicy", "ModelConfig", "OptimizerConfig", "TrainConfig"]
