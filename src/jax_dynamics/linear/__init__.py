"""Linear relations and order-preserving sequential elimination."""

from .elimination import eliminate, eliminate_sequential
from .gaussian import GaussianBayesNet, GaussianConditional, LinearRelation
from .noise import NoiseModel

__all__ = [
    "GaussianBayesNet",
    "GaussianConditional",
    "LinearRelation",
    "NoiseModel",
    "eliminate",
    "eliminate_sequential",
]
