# galibot_engine/formatting.py
"""Post-processing of model answers before they reach the client."""

from __future__ import annotations

import re

# $$$\$ and runs of three or more dollars collapse to a block delimiter
_RUNAWAY_ESCAPED = re.compile(r"\$\$\$\\\$")
_RUNAWAY_DOLLARS = re.compile(r"\${3,}")

# \[ ... \] display blocks become $$ ... $$
_BRACKET_BLOCK = re.compile(r"\\\[\s*([\s\S]*?)\s*\\\]")

# A line holding nothing but a single $
_LONE_DOLLAR_LINE = re.compile(r"^\s*\$\s*$", re.MULTILINE)

# $$ ... $ with a missing closing dollar; well-formed $$ ... $$ never matches
_HALF_CLOSED_BLOCK = re.compile(r"\$\$(?!\$)([^$]+?)\$(?!\$)")


def clean_latex_formulas(text: str | None) -> str | None:
    """
    Normalise malformed LaTeX delimiters in an answer.

    Formula bodies are left untouched, including doubled backslashes, which
    the client renderer handles.
    """
    if not text:
        return text

    s = _RUNAWAY_ESCAPED.sub("$$", text)
    s = _RUNAWAY_DOLLARS.sub("$$", s)
    s = _BRACKET_BLOCK.sub(lambda m: f"$$ {m.group(1)} $$", s)
    s = _LONE_DOLLAR_LINE.sub("", s)
    s = _HALF_CLOSED_BLOCK.sub(lambda m: f"$$ {m.group(1).strip()} $$", s)
    return s.strip()
