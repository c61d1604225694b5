"""
Training backends exposing ``train_fn``/``eval_fn`` for the search driver.
"""

from .torch_mlp import MLPBackend
