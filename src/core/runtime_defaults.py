"""
Runtime defaults for CLI/library processing.

Values can be overridden via environment variables so solver selection and
output sizing are not hardcoded in multiple entrypoints. Invalid values fall
back to the defaults silently.
"""

from __future__ import annotations

from dataclasses import dataclass
import os


ENV_SOLVER_BACKEND = "MESHLSCM_SOLVER_BACKEND"
ENV_BORDER = "MESHLSCM_BORDER"
ENV_LSQR_MAX_ITERATIONS = "MESHLSCM_LSQR_MAX_ITERATIONS"
ENV_SVD_MAX_UNKNOWNS = "MESHLSCM_SVD_MAX_UNKNOWNS"
ENV_PREVIEW_SIZE = "MESHLSCM_PREVIEW_SIZE"

SOLVER_BACKENDS = ("lu", "lsqr", "svd")
BORDER_STRATEGIES = ("two_vertices", "circle")


@dataclass(frozen=True)
class RuntimeDefaults:
    solver_backend: str
    border_strategy: str
    lsqr_max_iterations: int
    svd_max_unknowns: int
    preview_size: int


def _read_int_env(
    env_name: str,
    default: int,
    *,
    min_value: int | None = None,
    max_value: int | None = None,
) -> int:
    raw = os.environ.get(env_name)
    if raw is None:
        return default
    try:
        value = int(str(raw).strip())
    except (TypeError, ValueError):
        return default

    if min_value is not None and value < min_value:
        return default
    if max_value is not None and value > max_value:
        return default
    return value


def _read_choice_env(env_name: str, default: str, choices: tuple[str, ...]) -> str:
    raw = os.environ.get(env_name)
    if raw is None:
        return default
    value = str(raw).strip().lower().replace("-", "_")
    return value if value in choices else default


def load_runtime_defaults() -> RuntimeDefaults:
    return RuntimeDefaults(
        solver_backend=_read_choice_env(ENV_SOLVER_BACKEND, "lu", SOLVER_BACKENDS),
        border_strategy=_read_choice_env(ENV_BORDER, "two_vertices", BORDER_STRATEGIES),
        lsqr_max_iterations=_read_int_env(ENV_LSQR_MAX_ITERATIONS, 10000, min_value=10, max_value=10_000_000),
        svd_max_unknowns=_read_int_env(ENV_SVD_MAX_UNKNOWNS, 4000, min_value=2, max_value=100_000),
        preview_size=_read_int_env(ENV_PREVIEW_SIZE, 1024, min_value=64, max_value=16384),
    )


DEFAULTS = load_runtime_defaults()
