"""Prompt templates for page generation and prompt optimization.

Templates are Markdown files in this directory. Both prompts share the
language instruction in _language.md.
"""

from __future__ import annotations

from pathlib import Path

from jinja2 import Environment, FileSystemLoader, TemplateNotFound

_PROMPTS_DIR = Path(__file__).parent

_env = Environment(
    loader=FileSystemLoader(_PROMPTS_DIR, encoding="utf-8"),
    trim_blocks=True,
    lstrip_blocks=True,
    autoescape=False,
)


def render_prompt(template_name: str, *, language: str | None = None) -> str:
    """Render ``<template_name>.md`` for the given page language.

    Raises:
        FileNotFoundError: If no such template ships with livepage.
    """
    try:
        template = _env.get_template(f"{template_name}.md")
    except TemplateNotFound:
        raise FileNotFoundError(
            f"Prompt template not found: {_PROMPTS_DIR / template_name}.md"
        ) from None
    return template.render(language=language).strip()


def system_prompt(language: str | None = None) -> str:
    """System message for a page generation request."""
    return render_prompt("system", language=language)


def optimize_prompt(language: str | None = None) -> str:
    """System message for the prompt optimizer."""
    return render_prompt("optimize", language=language)
