from .mlp import SimpleMLP
