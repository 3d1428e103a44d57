"""
Sparse Least-Squares Solver Module
희소 최소자승 선형 시스템 조립 및 풀이

변수(unknown)마다 값과 잠금(lock) 상태를 가지며, 행(row) 단위로 계수를
추가합니다. 잠긴 변수의 기여는 행을 확정(end_row)할 때 우변으로 옮겨지고,
자유 변수만으로 이루어진 희소 행렬을 backend가 풉니다.

사용 순서:
    solver = LeastSquaresSolver(n)
    solver.set_least_squares(True)
    solver.variable(i).set_value(x); solver.variable(i).lock()
    solver.begin_system()
    solver.begin_row(); solver.add_coefficient(i, a); ...; solver.end_row()
    solver.end_system()
    ok = solver.solve()
"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np
from scipy import sparse
from scipy.sparse.linalg import lsqr, splu

from .errors import SolverStateError

_LOGGER = logging.getLogger(__name__)

_STATE_INITIAL = "initial"
_STATE_SYSTEM = "system"
_STATE_ROW = "row"
_STATE_BUILT = "built"
_STATE_SOLVED = "solved"


class SolverBackend:
    """최소자승 풀이 전략 (런타임 주입)"""

    name = "base"

    def solve(self, A: sparse.csr_matrix, b: np.ndarray, x0: np.ndarray) -> Optional[np.ndarray]:
        """
        min ||A x - b|| 풀이

        Returns:
            해 벡터, 실패 시 None (특이/랭크 부족/미수렴)
        """
        raise NotImplementedError


class NormalEquationsBackend(SolverBackend):
    """정규방정식 AᵀA x = Aᵀb 를 sparse LU(splu)로 풀이"""

    name = "lu"

    def __init__(self, pivot_tolerance: float = 1e-12, regularization: float = 0.0):
        self.pivot_tolerance = float(pivot_tolerance)
        self.regularization = float(regularization)

    def solve(self, A, b, x0):
        n = int(A.shape[1])
        AtA = (A.T @ A).tocsc()
        Atb = np.asarray(A.T @ b, dtype=np.float64).reshape(-1)
        if self.regularization > 0.0:
            AtA = (AtA + sparse.eye(n, format="csc") * self.regularization).tocsc()

        try:
            lu = splu(AtA)
        except RuntimeError:
            _LOGGER.debug("Normal equations are exactly singular (n=%d)", n, exc_info=True)
            return None

        # 피벗 비율로 랭크 부족 판정
        pivots = np.abs(lu.U.diagonal())
        if pivots.size:
            if not np.all(np.isfinite(pivots)):
                return None
            largest = float(pivots.max())
            if largest <= 0.0 or float(pivots.min()) <= self.pivot_tolerance * largest:
                _LOGGER.debug(
                    "Normal equations are rank deficient (min pivot %.3e, max pivot %.3e)",
                    float(pivots.min()),
                    largest,
                )
                return None

        return lu.solve(Atb)


class LSQRBackend(SolverBackend):
    """반복법 LSQR (초기값 x0 사용)"""

    name = "lsqr"

    def __init__(
        self,
        atol: float = 1e-12,
        btol: float = 1e-12,
        conlim: float = 1e10,
        max_iterations: Optional[int] = None,
    ):
        self.atol = float(atol)
        self.btol = float(btol)
        self.conlim = float(conlim)
        self.max_iterations = max_iterations
        self.last_istop: Optional[int] = None
        self.last_iterations: int = 0

    def solve(self, A, b, x0):
        result = lsqr(
            A,
            b,
            atol=self.atol,
            btol=self.btol,
            conlim=self.conlim,
            iter_lim=self.max_iterations,
            x0=x0,
        )
        x, istop, itn = result[0], int(result[1]), int(result[2])
        self.last_istop = istop
        self.last_iterations = itn
        # 3/6: 조건수 한계 초과, 7: 반복 한계 도달
        if istop in (3, 6, 7):
            _LOGGER.debug("LSQR did not converge (istop=%d, itn=%d)", istop, itn)
            return None
        return np.asarray(x, dtype=np.float64)


class DenseSVDBackend(SolverBackend):
    """작은 시스템용 dense SVD 풀이 (조건수 기록)"""

    name = "svd"

    def __init__(self, rcond: float = 1e-10, max_unknowns: int = 4000):
        self.rcond = float(rcond)
        self.max_unknowns = int(max_unknowns)
        self.last_condition_number: float = float("nan")

    def solve(self, A, b, x0):
        n = int(A.shape[1])
        if n > self.max_unknowns:
            _LOGGER.warning("Dense SVD refused: %d unknowns exceed limit %d", n, self.max_unknowns)
            return None

        M = A.toarray()
        try:
            u, s, vt = np.linalg.svd(M, full_matrices=False)
        except np.linalg.LinAlgError:
            _LOGGER.debug("SVD did not converge", exc_info=True)
            return None

        if s.size < n:
            self.last_condition_number = float("inf")
            return None
        s_max = float(s.max()) if s.size else 0.0
        s_min = float(s.min()) if s.size else 0.0
        if s_max <= 0.0 or s_min <= self.rcond * s_max:
            self.last_condition_number = float("inf")
            _LOGGER.debug("SVD system is rank deficient (s_min=%.3e, s_max=%.3e)", s_min, s_max)
            return None

        self.last_condition_number = s_max / s_min
        return vt.T @ ((u.T @ b) / s)


_BACKENDS = {
    "lu": NormalEquationsBackend,
    "normal": NormalEquationsBackend,
    "lsqr": LSQRBackend,
    "svd": DenseSVDBackend,
}


def make_backend(name: str, **kwargs) -> SolverBackend:
    """이름('lu' | 'lsqr' | 'svd')으로 backend 생성"""
    key = str(name or "lu").strip().lower()
    cls = _BACKENDS.get(key)
    if cls is None:
        raise ValueError(f"Unknown solver backend: {name!r} (expected one of {sorted(_BACKENDS)})")
    return cls(**kwargs)


class Variable:
    """솔버 변수 하나에 대한 view"""

    __slots__ = ("_solver", "_index")

    def __init__(self, solver: "LeastSquaresSolver", index: int):
        self._solver = solver
        self._index = index

    @property
    def index(self) -> int:
        return self._index

    @property
    def value(self) -> float:
        return float(self._solver._values[self._index])

    def set_value(self, value: float) -> None:
        self._solver._values[self._index] = float(value)

    @property
    def is_locked(self) -> bool:
        return bool(self._solver._locked[self._index])

    def lock(self) -> None:
        self._solver._set_locked(self._index, True)

    def unlock(self) -> None:
        self._solver._set_locked(self._index, False)


class LeastSquaresSolver:
    """
    행 단위로 조립되는 희소 선형 시스템

    Args:
        n_variables: 변수 개수
        backend: 풀이 전략 (None이면 NormalEquationsBackend)
    """

    def __init__(self, n_variables: int, backend: Optional[SolverBackend] = None):
        n = int(n_variables)
        if n < 0:
            raise ValueError("n_variables must be >= 0")
        self.backend = backend if backend is not None else NormalEquationsBackend()
        self._values = np.zeros(n, dtype=np.float64)
        self._locked = np.zeros(n, dtype=bool)
        self._least_squares = False
        self._state = _STATE_INITIAL

        self._free_index: Optional[np.ndarray] = None
        self._coo_rows: list[int] = []
        self._coo_cols: list[int] = []
        self._coo_vals: list[float] = []
        self._rhs: list[float] = []
        self._row_terms: list[tuple[int, float]] = []
        self._row_rhs = 0.0

    @property
    def n_variables(self) -> int:
        return int(self._values.shape[0])

    @property
    def n_rows(self) -> int:
        return len(self._rhs)

    @property
    def n_free(self) -> int:
        return int(np.count_nonzero(~self._locked))

    @property
    def least_squares(self) -> bool:
        return self._least_squares

    @property
    def values(self) -> np.ndarray:
        return self._values.copy()

    def set_least_squares(self, flag: bool) -> None:
        self._least_squares = bool(flag)

    def variable(self, index: int) -> Variable:
        i = int(index)
        if i < 0 or i >= self.n_variables:
            raise IndexError(f"variable {i} out of range [0, {self.n_variables})")
        return Variable(self, i)

    def _set_locked(self, index: int, flag: bool) -> None:
        if self._state != _STATE_INITIAL:
            raise SolverStateError("variables can only be (un)locked before begin_system()")
        self._locked[index] = flag

    def _require(self, *states: str) -> None:
        if self._state not in states:
            raise SolverStateError(f"invalid call in state {self._state!r} (expected {', '.join(states)})")

    def begin_system(self) -> None:
        self._require(_STATE_INITIAL)
        free = np.flatnonzero(~self._locked)
        free_index = np.full(self.n_variables, -1, dtype=np.int64)
        free_index[free] = np.arange(free.size, dtype=np.int64)
        self._free_index = free_index
        self._coo_rows.clear()
        self._coo_cols.clear()
        self._coo_vals.clear()
        self._rhs.clear()
        self._state = _STATE_SYSTEM

    def begin_row(self) -> None:
        self._require(_STATE_SYSTEM)
        self._row_terms = []
        self._row_rhs = 0.0
        self._state = _STATE_ROW

    def add_coefficient(self, index: int, coefficient: float) -> None:
        self._require(_STATE_ROW)
        i = int(index)
        if i < 0 or i >= self.n_variables:
            raise IndexError(f"variable {i} out of range [0, {self.n_variables})")
        self._row_terms.append((i, float(coefficient)))

    def set_right_hand_side(self, value: float) -> None:
        self._require(_STATE_ROW)
        self._row_rhs = float(value)

    def end_row(self) -> None:
        """행 확정: 잠긴 변수의 항은 우변으로 이동"""
        self._require(_STATE_ROW)
        assert self._free_index is not None
        row = len(self._rhs)
        rhs = self._row_rhs
        for i, a in self._row_terms:
            if self._locked[i]:
                rhs -= a * self._values[i]
            else:
                self._coo_rows.append(row)
                self._coo_cols.append(int(self._free_index[i]))
                self._coo_vals.append(a)
        self._rhs.append(rhs)
        self._row_terms = []
        self._state = _STATE_SYSTEM

    def end_system(self) -> None:
        self._require(_STATE_SYSTEM)
        self._state = _STATE_BUILT

    def matrix(self) -> tuple[sparse.csr_matrix, np.ndarray]:
        """자유 변수 열만으로 조립된 (A, b), 행이 없는 열도 포함"""
        self._require(_STATE_BUILT, _STATE_SOLVED)
        A = sparse.coo_matrix(
            (self._coo_vals, (self._coo_rows, self._coo_cols)),
            shape=(self.n_rows, self.n_free),
            dtype=np.float64,
        ).tocsr()
        b = np.asarray(self._rhs, dtype=np.float64)
        return A, b

    def solve(self) -> bool:
        self._require(_STATE_BUILT, _STATE_SOLVED)
        free = np.flatnonzero(~self._locked)
        if free.size == 0:
            self._state = _STATE_SOLVED
            return True

        A, b = self.matrix()
        if A.shape[0] == 0:
            _LOGGER.debug("No equations for %d free unknowns", int(free.size))
            return False

        # 어떤 행에도 나오지 않는 자유 변수는 풀지 않고 초기값 유지
        used = np.unique(np.asarray(self._coo_cols, dtype=np.int64))
        if used.size < free.size:
            _LOGGER.debug("%d free unknowns appear in no row and keep their values", int(free.size - used.size))
            A = A[:, used]
            free = free[used]
        if free.size == 0:
            self._state = _STATE_SOLVED
            return True

        if self._least_squares:
            x = self.backend.solve(A, b, self._values[free].copy())
        else:
            x = _solve_square(A, b)

        if x is None:
            return False
        x = np.asarray(x, dtype=np.float64).reshape(-1)
        if x.shape[0] != free.size or not np.all(np.isfinite(x)):
            _LOGGER.debug("Solver returned an invalid solution vector")
            return False

        self._values[free] = x
        self._state = _STATE_SOLVED
        return True


def _solve_square(A: sparse.csr_matrix, b: np.ndarray) -> Optional[np.ndarray]:
    if A.shape[0] != A.shape[1]:
        _LOGGER.warning("Square solve requested for a %dx%d system", A.shape[0], A.shape[1])
        return None
    try:
        lu = splu(A.tocsc())
    except RuntimeError:
        _LOGGER.debug("Square system is singular", exc_info=True)
        return None
    return lu.solve(b)
