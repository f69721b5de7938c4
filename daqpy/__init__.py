"""Dual active-set solver for quadratic, linear and mixed-binary programs,
with swing-up and state-feedback helpers for a rotary pendulum."""

__version__ = "0.1.0"

__all__ = [
    "api",
    "auxiliary",
    "bnb",
    "constants",
    "control",
    "factorization",
    "model",
    "prox",
    "solver",
    "transform",
]