# Standard Library
import os
import tempfile
from datetime import datetime

# PIP3 modules
import yaml


HIGHLIGHTS_DIR_NAME = "highlights"
CHANGELOG_DIR_NAME = "changelog"
PREVIEW_MAX_LINES = 12


#============================================
def current_week_tag(now: datetime) -> str:
	"""
	Return the ISO week of `now` as YYYY-WW.
	"""
	iso_year, iso_week, _ = now.isocalendar()
	return f"{iso_year}-{iso_week:02d}"


#============================================
def render_front_matter(title: str, week: str, generated_at: str, source: str, author: str) -> str:
	"""
	Render the YAML metadata block that opens each digest document.
	"""
	metadata = {
		"title": title,
		"week": week,
		"generatedAt": generated_at,
		"source": source,
		"author": author,
	}
	body = yaml.safe_dump(metadata, sort_keys=False, allow_unicode=True, default_flow_style=False)
	return f"---\n{body}---\n"


#============================================
def render_document(title: str, week: str, generated_at: str, source: str, author: str, body: str) -> str:
	front_matter = render_front_matter(title, week, generated_at, source, author)
	return f"{front_matter}\n{body.strip()}\n"


#============================================
def digest_paths(content_dir: str, week: str) -> tuple[str, str]:
	"""
	Return (highlights_path, changelog_path) for one week.
	"""
	filename = f"{week}.md"
	return (
		os.path.join(content_dir, HIGHLIGHTS_DIR_NAME, filename),
		os.path.join(content_dir, CHANGELOG_DIR_NAME, filename),
	)


#============================================
def write_text_files(files: list[tuple[str, str]]) -> list[int]:
	"""
	Write several UTF-8 files together and return their byte sizes.

	Every file is staged in a temporary sibling first; targets are only
	replaced once all of them are staged, so a failed run leaves none
	of them half written.
	"""
	staged = []
	try:
		for path, text in files:
			dir_name = os.path.dirname(os.path.abspath(path))
			os.makedirs(dir_name, exist_ok=True)
			fd, tmp_path = tempfile.mkstemp(dir=dir_name, suffix=".md.tmp")
			staged.append((tmp_path, path))
			data = text.encode("utf-8")
			with os.fdopen(fd, "wb") as handle:
				handle.write(data)
	except OSError:
		for tmp_path, _ in staged:
			if os.path.exists(tmp_path):
				os.remove(tmp_path)
		raise
	sizes = []
	for tmp_path, path in staged:
		os.replace(tmp_path, path)
		sizes.append(os.path.getsize(path))
	return sizes


#============================================
def preview_text(text: str, max_lines: int = PREVIEW_MAX_LINES) -> str:
	"""
	Keep the first max_lines lines and note how many were cut.
	"""
	lines = text.splitlines()
	if len(lines) <= max_lines:
		return "\n".join(lines)
	hidden = len(lines) - max_lines
	return "\n".join(lines[:max_lines] + [f"... ({hidden} more line(s))"])
