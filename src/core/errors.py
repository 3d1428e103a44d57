"""
Parameterization status codes and exceptions.

The LSCM engine reports failures as `ErrorCode` values (it never raises for
expected geometric/numeric failures). Higher layers such as the flattener
and the CLI convert a non-OK code into `ParameterizationError`.
"""

from __future__ import annotations

from enum import Enum


class ErrorCode(Enum):
    OK = "ok"
    ERROR_EMPTY_MESH = "empty_mesh"
    ERROR_NON_TRIANGULAR_MESH = "non_triangular_mesh"
    ERROR_BORDER_PARAMETERIZATION = "border_parameterization"
    ERROR_BORDER_TOO_SHORT = "border_too_short"
    ERROR_CANNOT_SOLVE_LINEAR_SYSTEM = "cannot_solve_linear_system"
    ERROR_WRONG_PARAMETER = "wrong_parameter"

    @property
    def ok(self) -> bool:
        return self is ErrorCode.OK

    @property
    def message(self) -> str:
        return _MESSAGES[self]


_MESSAGES = {
    ErrorCode.OK: "Success",
    ErrorCode.ERROR_EMPTY_MESH: "Input mesh is empty",
    ErrorCode.ERROR_NON_TRIANGULAR_MESH: "Input mesh is not triangular",
    ErrorCode.ERROR_BORDER_PARAMETERIZATION: "Border parameterization failed (need at least two distinct pinned vertices)",
    ErrorCode.ERROR_BORDER_TOO_SHORT: "The border of the input mesh is too short",
    ErrorCode.ERROR_CANNOT_SOLVE_LINEAR_SYSTEM: "Cannot solve linear system",
    ErrorCode.ERROR_WRONG_PARAMETER: "A method received an unexpected parameter",
}


class ParameterizationError(RuntimeError):
    """Raised by high-level helpers when the engine returns a non-OK code."""

    def __init__(self, code: ErrorCode, detail: str | None = None):
        self.code = code
        text = code.message if not detail else f"{code.message}: {detail}"
        super().__init__(text)


class SolverStateError(RuntimeError):
    """Misuse of the least-squares solver protocol (row/system ordering)."""
