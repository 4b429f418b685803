"""Prompt templates shipped in foliolib/prompts/."""

# Standard Library
import os
import re
from functools import lru_cache


PROMPT_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "prompts")
TOKEN_RE = re.compile(r"\{\{(\w+)\}\}")


#============================================
@lru_cache(maxsize=None)
def load_prompt(prompt_name: str) -> str:
	"""
	Read one template by file name.
	"""
	if not prompt_name:
		raise ValueError("prompt_name is required")
	path = os.path.join(PROMPT_DIR, prompt_name)
	if not os.path.isfile(path):
		raise FileNotFoundError(f"Prompt file not found: {path}")
	with open(path, "r", encoding="utf-8") as handle:
		return handle.read()


#============================================
def render_prompt(template: str, values: dict[str, str]) -> str:
	"""
	Fill {{token}} placeholders in one pass.

	Substituted text is never scanned again, so a value that itself
	contains {{token}} stays literal. Tokens without a value are kept.
	"""
	def replace(match: re.Match) -> str:
		key = match.group(1)
		if key not in values:
			return match.group(0)
		value = values[key]
		return value if value is not None else ""

	return TOKEN_RE.sub(replace, template or "")
