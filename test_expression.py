"""
Tests for the matrix-expression engine used by the compiled strategy.

Run: pytest test_expression.py -v
"""

import pytest
import numpy as np

from kalman_strategies import DimensionError, SingularMatrixError
from kalman_strategies.expression import (
    ExpressionError,
    ExpressionSyntaxError,
    SymbolTable,
    compile_statement,
    compile_statements,
    free_names,
    parse,
    run_programs,
    tokenize,
)
from kalman_strategies.expression.parser import (
    Assign, BinOp, Inverse, Name, Negate, Number, Transpose,
)


# ============================================================================
# Helpers
# ============================================================================

def assert_close(name: str, a, b, atol: float = 1e-12, rtol: float = 1e-12):
    if not np.allclose(a, b, atol=atol, rtol=rtol):
        pytest.fail(f"{name}: FAILED, max_abs_diff={np.max(np.abs(np.asarray(a) - b)):.3e}")


@pytest.fixture
def table():
    """Symbol table with a small consistent set of matrices."""
    rng = np.random.default_rng(0)
    t = SymbolTable()
    t.bind("A", rng.normal(size=(3, 3)))
    t.bind("B", rng.normal(size=(3, 2)))
    t.bind("v", rng.normal(size=(3, 1)))
    t.bind("S", np.array([[4.0, 1.0], [1.0, 3.0]]))
    t.bind("out33", np.zeros((3, 3)))
    t.bind("out32", np.zeros((3, 2)))
    t.bind("out31", np.zeros((3, 1)))
    t.bind("out22", np.zeros((2, 2)))
    return t


def val(table, name):
    return table[name].value


# ============================================================================
# Tokenizer
# ============================================================================

class TestTokenize:

    def test_kinds_and_positions(self):
        tokens = tokenize("K = P*H'")
        assert [(t.kind, t.text) for t in tokens] == [
            ("name", "K"), ("op", "="), ("name", "P"), ("op", "*"),
            ("name", "H"), ("op", "'"), ("end", ""),
        ]
        assert [t.position for t in tokens] == [0, 2, 4, 5, 6, 7, 8]

    @pytest.mark.parametrize("text, value", [
        ("2", 2.0), ("0.5", 0.5), (".25", 0.25), ("1e-3", 1e-3), ("3.E2", 300.0),
    ])
    def test_numbers(self, text, value):
        tree = parse(f"x = {text}")
        assert tree.value == Number(value)

    def test_rejects_unknown_character(self):
        with pytest.raises(ExpressionSyntaxError) as info:
            tokenize("x = a / b")
        assert info.value.position == 6


# ============================================================================
# Parser
# ============================================================================

class TestParse:

    def test_product_binds_tighter_than_sum(self):
        tree = parse("x = a + b*c")
        assert tree == Assign("x", BinOp("+", Name("a"), BinOp("*", Name("b"), Name("c"))))

    def test_left_associative(self):
        assert parse("x = a - b - c").value == BinOp(
            "-", BinOp("-", Name("a"), Name("b")), Name("c")
        )
        assert parse("x = a*b*c").value == BinOp(
            "*", BinOp("*", Name("a"), Name("b")), Name("c")
        )

    def test_transpose_binds_tightest(self):
        assert parse("x = -a'").value == Negate(Transpose(Name("a")))
        assert parse("x = a*b'").value == BinOp("*", Name("a"), Transpose(Name("b")))
        assert parse("x = (a*b)'").value == Transpose(BinOp("*", Name("a"), Name("b")))

    def test_inverse(self):
        tree = parse("K = P*H'*inv(H*P*H' + R)")
        assert tree.target == "K"
        gain = tree.value
        assert isinstance(gain, BinOp) and gain.op == "*"
        assert isinstance(gain.right, Inverse)
        assert free_names(tree.value) == ["P", "H", "R"]

    @pytest.mark.parametrize("source", [
        "",
        "x",
        "x =",
        "x = a +",
        "x = (a",
        "x = a b",
        "x = inv a",
        "inv = a",
        "= a",
        "x = a)",
    ])
    def test_syntax_errors(self, source):
        with pytest.raises(ExpressionSyntaxError):
            parse(source)

    def test_syntax_error_reports_column(self):
        with pytest.raises(ExpressionSyntaxError, match="column 6") as info:
            parse("x = a b")
        assert info.value.source == "x = a b"

    def test_syntax_error_is_value_error(self):
        with pytest.raises(ValueError):
            parse("x = = a")


# ============================================================================
# Compilation
# ============================================================================

class TestCompile:

    def test_matches_numpy(self, table):
        A, B, v = val(table, "A"), val(table, "B"), val(table, "v")
        cases = [
            ("out33 = A*A' + A", A @ A.T + A),
            ("out33 = -A + 2*A", A),
            ("out32 = A*B - B*0.5", A @ B - 0.5 * B),
            ("out31 = A*v + v", A @ v + v),
            ("out31 = (A - A')*v", (A - A.T) @ v),
            ("out22 = B'*B", B.T @ B),
        ]
        for source, expected in cases:
            compile_statement(source, table).run()
            target = source.split("=")[0].strip()
            assert_close(source, val(table, target), expected)

    def test_inverse(self, table):
        compile_statement("out22 = inv(S)", table).run()
        assert_close("inv(S)", val(table, "out22"), np.linalg.inv(val(table, "S")))

    def test_singular_inverse_raises(self, table):
        table.alias("S", np.ones((2, 2)))
        program = compile_statement("out22 = inv(S)", table)
        before = val(table, "out22").copy()
        with pytest.raises(SingularMatrixError):
            program.run()
        np.testing.assert_array_equal(val(table, "out22"), before)

    def test_target_may_appear_on_right(self, table):
        v0 = val(table, "v").copy()
        A = val(table, "A")
        program = compile_statement("v = A*v", table)
        program.run()
        program.run()
        assert_close("v", val(table, "v"), A @ (A @ v0))

    def test_result_written_in_place(self, table):
        out = val(table, "out33")
        compile_statement("out33 = A'", table).run()
        assert val(table, "out33") is out

    @pytest.mark.parametrize("source", [
        "out33 = A*B",       # result (3, 2) into (3, 3)
        "out33 = B*A",       # inner dims
        "out32 = A + B",     # add (3, 3) and (3, 2)
        "out22 = inv(B'*A)", # inv of non-square
        "out33 = 2",         # scalar result
    ])
    def test_shape_errors(self, table, source):
        with pytest.raises(DimensionError):
            compile_statement(source, table)

    def test_unbound_name(self, table):
        with pytest.raises(ExpressionError, match="unbound"):
            compile_statement("out33 = A*C", table)
        with pytest.raises(ExpressionError):
            compile_statement("C = A", table)


# ============================================================================
# Symbol table and slots
# ============================================================================

class TestSymbolTable:

    def test_bind_does_not_copy(self):
        t = SymbolTable()
        a = np.zeros((2, 2))
        assert t.bind("a", a).value is a

    def test_duplicate_and_reserved_names(self):
        t = SymbolTable()
        t.bind("a", np.zeros((1, 1)))
        with pytest.raises(ExpressionError):
            t.bind("a", np.zeros((1, 1)))
        with pytest.raises(ExpressionError):
            t.bind("inv", np.zeros((1, 1)))
        assert "a" in t and "b" not in t
        assert t.names() == ["a"]

    def test_bind_rejects_non_matrix(self):
        with pytest.raises(DimensionError):
            SymbolTable().bind("a", np.zeros(3))

    def test_alias_rejects_other_shape(self, table):
        with pytest.raises(DimensionError):
            table.alias("v", np.zeros((2, 1)))

    def test_alias_seen_on_replay(self, table):
        """Retargeting a slot changes what an already compiled program reads."""
        program = compile_statement("out31 = A*v", table)
        A = val(table, "A")

        w = np.array([[1.0], [2.0], [3.0]])
        table.alias("v", w)
        program.run()
        assert_close("A*w", val(table, "out31"), A @ w)

        # In-place mutation of the aliased array is visible too
        w[:] = -1.0
        program.run()
        assert_close("A*w'", val(table, "out31"), A @ w)

    def test_alias_seen_through_transpose(self, table):
        program = compile_statement("out22 = B'*B", table)
        C = np.arange(6.0).reshape(3, 2)
        table.alias("B", C)
        program.run()
        assert_close("C'C", val(table, "out22"), C.T @ C)


# ============================================================================
# Blocks
# ============================================================================

class TestBlocks:

    def test_statements_run_in_order(self):
        t = SymbolTable()
        t.bind("a", np.array([[1.0]]))
        t.bind("b", np.zeros((1, 1)))
        programs = compile_statements(["b = a + 1", "a = b*b", "b = -a"], t)

        run_programs(programs)
        assert t["a"].value[0, 0] == 4.0
        assert t["b"].value[0, 0] == -4.0

    def test_disassemble(self, table):
        program = compile_statement("out22 = inv(B'*B + S)", table)
        listing = program.disassemble()
        lines = listing.splitlines()
        assert lines[0] == "; out22 = inv(B'*B + S)"
        assert lines[-1].startswith("out22 <- r")
        assert any("inv(" in line for line in lines)
        assert len(program) == 4
