import math

import torch
from torch import nn


ACTS = {
    "relu": nn.ReLU,
    "leaky_relu": nn.LeakyReLU,
    "tanh": nn.Tanh,
    "sigmoid": nn.Sigmoid,
}


class Dropout(nn.Dropout):
    """nn.Dropout that draws its masks from ``generator`` when one is set."""

    generator: torch.Generator | None = None

    def forward(self, x):
        if self.generator is None or not self.training or self.p == 0.0:
            return super().forward(x)
        keep = 1.0 - self.p
        if keep == 0.0:
            return torch.zeros_like(x)
        mask = torch.empty_like(x).bernoulli_(keep, generator=self.generator)
        return x * mask / keep


class SimpleMLP(nn.Module):
    """
    A configurable feed-forward MLP.

    Parameters:
        input_dim (int): Number of input features.
        hidden (list[int]): Hidden layer sizes.
        output_dim (int): Output units (N for N-class classification, 1 for regression).
        activation (str): Activation function for hidden layers.
        input_dropout (float): Dropout ratio applied to the inputs.
        hidden_dropout (float): Dropout ratio applied after every hidden layer.
    """

    def __init__(
        self,
        input_dim,
        hidden,
        output_dim,
        activation="relu",
        input_dropout=0.0,
        hidden_dropout=0.0,
    ):
        super().__init__()

        if activation not in ACTS:
            raise ValueError(f"Unknown activation '{activation}'")

        act = ACTS[activation]

        layers = []
        if input_dropout > 0:
            layers.append(Dropout(input_dropout))
        prev = input_dim
        for h in hidden:
            layers.append(nn.Linear(prev, h))
            layers.append(act())
            if hidden_dropout > 0:
                layers.append(Dropout(hidden_dropout))
            prev = h

        layers.append(nn.Linear(prev, output_dim))

        self.net = nn.Sequential(*layers)

    def linear_layers(self):
        return [m for m in self.net if isinstance(m, nn.Linear)]

    def reset_parameters(self, generator=None):
        """Redraw every weight and bias as nn.Linear does, from ``generator``."""
        with torch.no_grad():
            for layer in self.linear_layers():
                bound = 1.0 / math.sqrt(layer.in_features)
                layer.weight.uniform_(-bound, bound, generator=generator)
                layer.bias.uniform_(-bound, bound, generator=generator)

    def set_dropout_generator(self, generator):
        """Draw every dropout mask from ``generator`` (None: global RNG)."""
        for m in self.net:
            if isinstance(m, Dropout):
                m.generator = generator

    def forward(self, x):
        return self.net(x)
