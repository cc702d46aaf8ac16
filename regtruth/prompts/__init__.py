"""
Prompt templates. Prompts live next to this module as versioned .md files
so they can be edited without code changes.
"""

from regtruth.prompts.loader import load_prompt, render_prompt

__all__ = ["load_prompt", "render_prompt"]
