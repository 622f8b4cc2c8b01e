"""Prompt composition for milestone analysis."""

from __future__ import annotations

from typing import Iterable

from milestone_analyzer.models.catalog import Validator


def build_prompt(base_prompt: str, milestone_name: str, validators: Iterable[Validator]) -> str:
    """Join the system prompt, milestone line and validator bullets.

    Sections are separated by a blank line; empty sections are omitted.
    """
    validator_lines = "\n".join(f"- {v.description}" for v in validators)
    sections = [
        base_prompt,
        f"Milestone: {milestone_name}" if milestone_name else "",
        f"Validators:\n{validator_lines}" if validator_lines else "",
    ]
    return "\n\n".join(s for s in sections if s)
