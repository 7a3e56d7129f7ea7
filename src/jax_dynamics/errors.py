"""Exceptions raised by jax_dynamics."""


class JaxDynamicsError(Exception):
    """Base class for all jax_dynamics errors."""


class MissingVariableError(JaxDynamicsError, KeyError):
    """A required key is absent from a value store."""

    def __init__(self, key):
        super().__init__(key)
        self.key = key

    def __str__(self):
        return f"Variable {self.key} not found in values"


class UnderdeterminedSystemError(JaxDynamicsError, ValueError):
    """Sequential elimination cannot produce a conditional for a variable."""

    def __init__(self, key, reason: str = "no relations involve it"):
        super().__init__(f"Cannot eliminate {key}: {reason}")
        self.key = key


class TopologyError(JaxDynamicsError, ValueError):
    """Links and joints do not form a valid mechanism."""
