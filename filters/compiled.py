"""
Compiled-expression strategy.

The predict/update formulas are parsed and compiled once, in configure(),
against a symbol table whose slots alias the filter's live storage. Each
call replays the compiled instruction sequences; update() only retargets
the `z` and `R` slots at the caller's arrays before replaying.
"""

import numpy as np
from typing import List, Optional, Tuple

from .base import KalmanFilter
from ..models.base import ModelConfig
from ..expression import SymbolTable, Program, compile_statements, run_programs


PREDICT_STATEMENTS = (
    "x = F*x",
    "P = F*P*F' + Q",
)

UPDATE_STATEMENTS = (
    "y = z - H*x",
    "K = P*H'*inv(H*P*H' + R)",
    "x = x + K*y",
    "P = P - K*(H*P)",
)


class CompiledKalmanFilter(KalmanFilter):
    """
    Kalman filter driven by compiled matrix expressions.

    The gain statement is the only one that can fail (singular S), and it
    runs before x and P are assigned, so a failed update leaves the
    estimate untouched.
    """

    name = "compiled"

    def __init__(self, symmetry_tol: Optional[float] = None):
        super().__init__(symmetry_tol=symmetry_tol)
        self.symbols: Optional[SymbolTable] = None
        self._placeholders: Tuple[np.ndarray, ...] = ()
        self._predict_program: List[Program] = []
        self._update_program: List[Program] = []

    def _configure(self, model: ModelConfig):
        n, m = model.n, model.m

        table = SymbolTable()
        table.bind("x", np.zeros((n, 1)))
        table.bind("P", np.zeros((n, n)))
        table.bind("F", model.F)
        table.bind("Q", model.Q)
        table.bind("H", model.H)
        # Placeholders, retargeted on every update()
        self._placeholders = (np.zeros((m, 1)), np.zeros((m, m)))
        table.bind("z", self._placeholders[0])
        table.bind("R", self._placeholders[1])
        # Scratch
        table.bind("y", np.zeros((m, 1)))
        table.bind("K", np.zeros((n, m)))

        self._predict_program = compile_statements(PREDICT_STATEMENTS, table)
        self._update_program = compile_statements(UPDATE_STATEMENTS, table)
        self.symbols = table

    def _set_state(self, x: np.ndarray, P: np.ndarray):
        # Copy into the bound storage; the programs keep pointing at it
        np.copyto(self.symbols["x"].value, x)
        np.copyto(self.symbols["P"].value, P)

    def _predict(self):
        run_programs(self._predict_program)

    def _update(self, z: np.ndarray, R: np.ndarray):
        self.symbols.alias("z", z)
        self.symbols.alias("R", R)
        try:
            run_programs(self._update_program)
        finally:
            # Do not keep the caller's arrays alive between calls
            self.symbols.alias("z", self._placeholders[0])
            self.symbols.alias("R", self._placeholders[1])

    def _current(self) -> Tuple[np.ndarray, np.ndarray]:
        return self.symbols["x"].value, self.symbols["P"].value

    def disassemble(self) -> str:
        """Listing of both compiled blocks."""
        blocks = [p.disassemble() for p in self._predict_program + self._update_program]
        return "\n\n".join(blocks)
