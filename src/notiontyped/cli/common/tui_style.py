"""Questionary / prompt_toolkit theme for notion-typed.

Questionary uses prompt_toolkit under the hood. This module defines one
central style so the interactive confirmation prompts look consistent.
"""

from __future__ import annotations

from prompt_toolkit.styles import Style

QUESTIONARY_STYLE_CONFIRM = Style.from_dict(
    {
        "question": "bold ansibrightcyan",
        "answer": "bold ansibrightyellow",
        "pointer": "bold ansibrightyellow",
        "highlighted": "bold ansibrightyellow",
        "separator": "ansibrightblack",
        "instruction": "ansibrightblack",
        "error": "bold ansired",
        "disabled": "ansibrightblack",
    }
)
