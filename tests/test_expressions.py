"""
Tests for expression parsing and resolution against a body table.
"""

import pytest

from asterion import (Expression, parse_expression, kerbol_system, InvalidResonance,
                      MalformedExpression, UnknownBody, UnknownProperty, JOOL, KERBIN)
from asterion.expressions import ExprType, resolve


@pytest.fixture
def bodies():
    return kerbol_system(ut=0.0)


# =============================================================================
# Parsing
# =============================================================================

class TestParse:

    @pytest.mark.parametrize("text, value", [
        ("1.5e9", 1.5e9),
        ("  42 ", 42.0),
        ("-7.25", -7.25),
        (3, 3.0),
        (0.5, 0.5),
    ])
    def test_literal(self, text, value):
        expr = parse_expression(text)
        assert expr.kind == ExprType.LITERAL
        assert expr.is_literal
        assert expr.value == value

    def test_ratio(self):
        expr = parse_expression("Ratio(Kerbin.sma, 0.5)")
        assert expr == Expression.ratio('Kerbin', 'sma', 0.5)

    def test_resonance(self):
        expr = parse_expression("Resonance(Jool, 2:3)")
        assert expr.kind == ExprType.RESONANCE
        assert (expr.body, expr.p, expr.q) == ('Jool', 2, 3)

    def test_offset(self):
        expr = parse_expression("Offset(Jool.lpe, -60)")
        assert expr == Expression.offset('Jool', 'lpe', -60.0)

    def test_whitespace_and_case(self):
        expr = parse_expression("  ratio( Kerbin . SMA ,1e-1 ) ")
        assert expr == Expression.ratio('Kerbin', 'sma', 0.1)

    def test_body_names_with_spaces(self):
        expr = parse_expression("Ratio(Gael Prime.soi, 2)")
        assert expr.body == 'Gael Prime'

    def test_expression_passes_through(self):
        expr = Expression.literal(1.0)
        assert parse_expression(expr) is expr

    @pytest.mark.parametrize("text", [
        "", "abc", "Ratio(Kerbin.sma)", "Ratio(Kerbin, 0.5)", "Resonance(Jool, 2/3)",
        "Offset(Jool.lpe, x)", "nan",
    ])
    def test_malformed(self, text):
        with pytest.raises(MalformedExpression):
            parse_expression(text)

    def test_boolean_rejected(self):
        with pytest.raises(MalformedExpression):
            parse_expression(True)

    def test_unknown_property(self):
        with pytest.raises(UnknownProperty, match="foo"):
            parse_expression("Ratio(Kerbin.foo, 1)")

    def test_offset_needs_angle(self):
        with pytest.raises(UnknownProperty, match="angle"):
            parse_expression("Offset(Kerbin.sma, 10)")

    @pytest.mark.parametrize("text", ["Resonance(Jool, 0:1)", "Resonance(Jool, 1:0)",
                                      "Resonance(Jool, -1:2)", "Resonance(Jool, 3:-2)"])
    def test_invalid_resonance(self, text):
        with pytest.raises(InvalidResonance):
            parse_expression(text)

    @pytest.mark.parametrize("text", ["12.5", "Ratio(Kerbin.sma, 0.5)",
                                      "Resonance(Jool, 2:3)", "Offset(Jool.lpe, 60.0)"])
    def test_str_parses_back(self, text):
        expr = parse_expression(text)
        assert parse_expression(str(expr)) == expr


# =============================================================================
# Resolution
# =============================================================================

class TestResolve:

    def test_literal(self, bodies):
        assert resolve(Expression.literal(12.0), bodies) == 12.0

    def test_ratio(self, bodies):
        assert resolve(parse_expression("Ratio(Kerbin.sma, 0.5)"), bodies) == \
            KERBIN.semimajor_axis * 0.5

    def test_resonance_unity_is_exact(self, bodies):
        expr = parse_expression("Resonance(Jool, 1:1)")
        assert resolve(expr, bodies) == JOOL.semimajor_axis

    def test_resonance_period_ratio(self, bodies):
        # an orbit with period ratio 1:8 has a quarter of the semimajor axis
        expr = parse_expression("Resonance(Jool, 1:8)")
        assert resolve(expr, bodies) == pytest.approx(JOOL.semimajor_axis / 4)

    def test_offset_wraps(self, bodies):
        # Jool lpe = 52
        assert resolve(parse_expression("Offset(Jool.lpe, 60)"), bodies) == pytest.approx(112.0)
        assert resolve(parse_expression("Offset(Jool.lpe, 330)"), bodies) == pytest.approx(22.0)
        assert resolve(parse_expression("Offset(Jool.lpe, -60)"), bodies) == pytest.approx(352.0)

    def test_offset_range(self, bodies):
        for delta in (-1000.0, -52.0, 308.0, 1e6):
            value = resolve(Expression.offset('Jool', 'lpe', delta), bodies)
            assert 0.0 <= value < 360.0

    def test_method_matches_function(self, bodies):
        expr = parse_expression("Ratio(Duna.apo, 2)")
        assert expr.resolve(bodies) == resolve(expr, bodies)

    def test_pure(self, bodies):
        expr = parse_expression("Offset(Minmus.mnl0, 15)")
        assert resolve(expr, bodies) == resolve(expr, bodies)

    def test_unknown_body(self, bodies):
        with pytest.raises(UnknownBody, match="Vall"):
            resolve(parse_expression("Ratio(Vall.sma, 1)"), bodies)

    def test_root_body_orbit(self, bodies):
        with pytest.raises(UnknownProperty):
            resolve(parse_expression("Resonance(Sun, 1:2)"), bodies)

    def test_follows_body_table(self):
        # expressions are bound to names, not values
        from asterion import BodyTable, CelestialBody, SUN
        planet = CelestialBody('Planet', mu=1e10, radius=1e5, parent='Sun',
                               semimajor_axis=1e9)
        moved = CelestialBody('Planet', mu=1e10, radius=1e5, parent='Sun',
                              semimajor_axis=2e9)
        expr = parse_expression("Ratio(Planet.sma, 1.5)")
        assert resolve(expr, BodyTable([SUN, planet])) == pytest.approx(1.5e9)
        assert resolve(expr, BodyTable([SUN, moved])) == pytest.approx(3e9)
