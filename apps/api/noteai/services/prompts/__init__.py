from __future__ import annotations

from noteai.services.prompts.registry import get_prompt_definitions, render_prompt

__all__ = [
    "render_prompt",
    "get_prompt_definitions",
]
