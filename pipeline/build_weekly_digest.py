#!/usr/bin/env python3
"""Build the weekly highlights and changelog pages from the GitHub cache.

Reads the cache written by fetch_github_cache.py, keeps the last 14 days,
builds a rule-based draft and, when a provider key is configured, asks a
chat model to rewrite it. Writes two Markdown files with front matter per
ISO week, or prints previews with --dry-run.
"""

# Standard Library
import argparse
import os
import sys
from dataclasses import dataclass
from datetime import datetime

# local repo modules
from foliolib import cache_models
from foliolib import console_log
from foliolib import digest_heuristics
from foliolib import digest_llm
from foliolib import digest_writer
from foliolib import pipeline_settings
from foliolib import run_config
from foliolib.activity_window import utc_now


JOB_NAME = "build_weekly_digest"
DEFAULT_AUTHOR = "GitHub activity bot"

log_step = console_log.make_logger(JOB_NAME)


#============================================
@dataclass
class DigestDocuments:
	highlights_path: str
	changelog_path: str
	highlights_text: str
	changelog_text: str
	rewrite: digest_llm.RewriteResult


#============================================
def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
	"""
	Parse command-line arguments.
	"""
	parser = argparse.ArgumentParser(
		description="Build weekly highlights and changelog Markdown from the GitHub cache."
	)
	parser.add_argument(
		'-w', '--week', dest='week',
		default=None,
		help="ISO week tag YYYY-WW (default: current week).",
	)
	parser.add_argument(
		'-m', '--max-highlights', dest='max_highlights',
		type=int,
		default=None,
		help=f"Maximum highlight bullets (default: {run_config.DEFAULT_MAX_HIGHLIGHTS}).",
	)
	parser.add_argument(
		'-c', '--cache', dest='cache',
		default=run_config.DEFAULT_CACHE_PATH,
		help="Path of the cache JSON written by fetch_github_cache.py.",
	)
	parser.add_argument(
		'-o', '--out-dir', dest='out_dir',
		default=run_config.DEFAULT_CONTENT_DIR,
		help="Content directory holding highlights/ and changelog/.",
	)
	parser.add_argument(
		'--settings', dest='settings',
		default="settings.yaml",
		help="YAML settings path for defaults.",
	)
	parser.add_argument(
		'--no-ai', dest='no_ai',
		action='store_true',
		help="Skip the model rewrite and publish the heuristic draft.",
	)
	parser.add_argument(
		'--dry-run', dest='dry_run',
		action='store_true',
		help="Print previews instead of writing files.",
	)
	args = parser.parse_args(argv)
	return args


#============================================
def build_documents(
	cache: cache_models.CacheDocument,
	config: run_config.DigestConfig,
	now: datetime,
	log_fn,
	transport=None,
) -> DigestDocuments:
	"""
	Compute the draft, try the rewrite, and render both documents in memory.
	"""
	draft = digest_heuristics.build_heuristic_draft(cache, config.max_highlights, now)
	log_fn(
		f"Heuristic draft: {len(draft.highlights)} highlight(s), "
		+ f"{len(draft.changelog_repos)} changelog section(s)."
	)
	rewrite = digest_llm.rewrite_digest(
		draft,
		config.week,
		config.providers,
		ai_enabled=config.ai_enabled,
		log_fn=log_fn,
		transport=transport,
	)
	reason_text = f" ({rewrite.reason})" if rewrite.reason else ""
	log_fn(f"Rewrite outcome: {rewrite.outcome.value}{reason_text}")

	generated_at = now.isoformat()
	author = config.author or cache.user or DEFAULT_AUTHOR
	highlights_text = digest_writer.render_document(
		f"Highlights {config.week}",
		config.week,
		generated_at,
		rewrite.highlights_source,
		author,
		"\n".join(rewrite.highlights),
	)
	changelog_text = digest_writer.render_document(
		f"Changelog {config.week}",
		config.week,
		generated_at,
		rewrite.changelog_source,
		author,
		rewrite.changelog,
	)
	highlights_path, changelog_path = digest_writer.digest_paths(config.content_dir, config.week)
	return DigestDocuments(
		highlights_path=highlights_path,
		changelog_path=changelog_path,
		highlights_text=highlights_text,
		changelog_text=changelog_text,
		rewrite=rewrite,
	)


#============================================
def run(config: run_config.DigestConfig, now: datetime, log_fn, transport=None) -> DigestDocuments:
	"""
	Read the cache and write or preview the week's two documents.
	"""
	cache = cache_models.read_cache(config.cache_path)
	log_fn(
		f"Loaded cache for {cache.user or '(unknown user)'} fetched at {cache.fetched_at or '?'}: "
		+ f"{len(cache.repos)} repos, {len(cache.events)} events, {len(cache.prs)} PRs."
	)
	documents = build_documents(cache, config, now, log_fn, transport=transport)
	if config.dry_run:
		log_fn("Dry run: digest files not written. Previews follow.")
		print(f"--- {documents.highlights_path}")
		print(digest_writer.preview_text(documents.highlights_text))
		print(f"--- {documents.changelog_path}")
		print(digest_writer.preview_text(documents.changelog_text))
		return documents
	files = [
		(documents.highlights_path, documents.highlights_text),
		(documents.changelog_path, documents.changelog_text),
	]
	sizes = digest_writer.write_text_files(files)
	for (path, _), size in zip(files, sizes):
		log_fn(f"Wrote {os.path.abspath(path)} ({size} bytes)")
	return documents


#============================================
def main(argv: list[str] | None = None, environ: dict | None = None, now: datetime | None = None) -> int:
	"""
	Run the Digest Builder and return the process exit code.
	"""
	args = parse_args(argv)
	env = dict(os.environ) if environ is None else environ
	run_time = now or utc_now()
	try:
		settings, settings_path = pipeline_settings.load_settings(args.settings)
		config = run_config.build_digest_config(
			args,
			env,
			settings,
			digest_writer.current_week_tag(run_time),
		)
		log_step(f"Using settings file: {settings_path}")
		log_step(f"Building digest for week {config.week} (max highlights {config.max_highlights}).")
		if config.providers:
			provider = config.providers[0]
			log_step(f"Model rewrite provider: {provider.name} (model={provider.model})")
		run(config, run_time, log_step)
	except pipeline_settings.ConfigError as error:
		console_log.log_error(JOB_NAME, str(error))
		return 1
	except (cache_models.MissingCacheError, cache_models.CorruptCacheError) as error:
		console_log.log_error(JOB_NAME, str(error))
		return 1
	except OSError as error:
		console_log.log_error(JOB_NAME, f"file error: {error}")
		return 1
	return 0


if __name__ == "__main__":
	sys.exit(main())
