# tests/test_formatting.py
"""Tests for LaTeX delimiter cleanup."""

import pytest

from galibot_engine.formatting import clean_latex_formulas


class TestCleanLatexFormulas:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("$$$x+y$$$", "$$x+y$$"),
            ("$$$\\$x$$", "$$x$$"),
            ("\\[ \\frac{a}{b} \\]", "$$ \\frac{a}{b} $$"),
            ("$$ x^2 $", "$$ x^2 $$"),
            ("שורה\n $ \nעוד שורה", "שורה\n\nעוד שורה"),
        ],
    )
    def test_repairs(self, raw, expected):
        assert clean_latex_formulas(raw) == expected

    @pytest.mark.parametrize(
        "text",
        [
            "$$ \\bar{x} = \\frac{\\sum x_i}{n} $$",
            "הממוצע הוא $\\mu$ והחציון $M$",
            "$$ a $$ ואז $$ b $$",
        ],
    )
    def test_well_formed_math_is_untouched(self, text):
        assert clean_latex_formulas(text) == text

    def test_empty_input(self):
        assert clean_latex_formulas("") == ""
        assert clean_latex_formulas(None) is None

    def test_surrounding_whitespace_is_trimmed(self):
        assert clean_latex_formulas("  תשובה  \n") == "תשובה"
