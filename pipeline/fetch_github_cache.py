#!/usr/bin/env python3
"""Fetch a GitHub user's public activity into the site's cache file.

Collects repositories, public events, authored pull requests and (when
enabled and authenticated) pinned repositories, then writes them as one
JSON document for build_weekly_digest.py and the site build to read.
"""

# Standard Library
import argparse
import json
import os
import sys
from datetime import datetime

# local repo modules
from foliolib import cache_models
from foliolib import console_log
from foliolib import github_client
from foliolib import pipeline_settings
from foliolib import run_config
from foliolib.activity_window import utc_now
from foliolib.cache_models import CacheDocument
from foliolib.cache_models import EventRecord
from foliolib.cache_models import PinnedItem
from foliolib.cache_models import PullRequestRecord
from foliolib.cache_models import RepositoryRecord


JOB_NAME = "fetch_github_cache"
PINNED_ITEM_COUNT = 6
PREVIEW_ITEM_COUNT = 2

log_step = console_log.make_logger(JOB_NAME)


#============================================
def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
	"""
	Parse command-line arguments.
	"""
	parser = argparse.ArgumentParser(
		description="Fetch GitHub repositories, events and pull requests into the cache JSON."
	)
	parser.add_argument(
		'-u', '--user', dest='user',
		default="",
		help="GitHub username to fetch (falls back to GITHUB_USER, then settings.yaml).",
	)
	parser.add_argument(
		'-n', '--limit', dest='limit',
		type=int,
		default=None,
		help=f"Maximum items per list (default: {run_config.DEFAULT_LIMIT}).",
	)
	parser.add_argument(
		'-o', '--output', dest='output',
		default=run_config.DEFAULT_CACHE_PATH,
		help="Path of the cache JSON file to write.",
	)
	parser.add_argument(
		'--settings', dest='settings',
		default="settings.yaml",
		help="YAML settings path for defaults.",
	)
	parser.add_argument(
		'--dry-run', dest='dry_run',
		action='store_true',
		help="Fetch and print a short preview without writing the cache.",
	)
	args = parser.parse_args(argv)
	return args


#============================================
def normalize_repo(repo: dict) -> RepositoryRecord:
	"""
	Flatten one REST repository payload.
	"""
	owner = repo.get("owner") or {}
	return RepositoryRecord(
		id=repo.get("id") or 0,
		name=repo.get("name") or "",
		full_name=repo.get("full_name") or "",
		html_url=repo.get("html_url") or "",
		description=repo.get("description"),
		stargazers_count=repo.get("stargazers_count") or 0,
		forks_count=repo.get("forks_count") or 0,
		language=repo.get("language"),
		topics=list(repo.get("topics") or []),
		homepage=repo.get("homepage") or None,
		archived=bool(repo.get("archived")),
		disabled=bool(repo.get("disabled")),
		pushed_at=repo.get("pushed_at"),
		updated_at=repo.get("updated_at"),
		created_at=repo.get("created_at"),
		owner_login=owner.get("login"),
		visibility=repo.get("visibility"),
	)


#============================================
def normalize_event(event: dict) -> EventRecord:
	"""
	Flatten one public event payload, keeping its type-specific payload.
	"""
	repo = event.get("repo") or {}
	actor = event.get("actor") or {}
	repo_name = repo.get("name") or ""
	repo_url = repo.get("url") or ""
	if not repo_url and repo_name:
		repo_url = f"{github_client.API_ROOT}/repos/{repo_name}"
	payload = event.get("payload")
	return EventRecord(
		id=str(event.get("id") or ""),
		type=event.get("type") or "",
		created_at=event.get("created_at"),
		repo_name=repo_name,
		repo_url=repo_url,
		actor_login=actor.get("login"),
		payload=payload if isinstance(payload, dict) else {},
	)


#============================================
def normalize_pull_request(item: dict) -> PullRequestRecord:
	"""
	Flatten one issue-search hit for a pull request.
	"""
	pull_request = item.get("pull_request") or {}
	user = item.get("user") or {}
	return PullRequestRecord(
		id=item.get("id") or 0,
		number=item.get("number") or 0,
		title=item.get("title") or "",
		state=item.get("state") or "",
		html_url=item.get("html_url") or "",
		repository_url=item.get("repository_url") or "",
		created_at=item.get("created_at"),
		updated_at=item.get("updated_at"),
		closed_at=item.get("closed_at"),
		merged_at=pull_request.get("merged_at"),
		author_login=user.get("login"),
	)


#============================================
def normalize_pinned_item(node: dict) -> PinnedItem:
	"""
	Flatten one GraphQL pinned repository node.
	"""
	language = node.get("primaryLanguage") or {}
	return PinnedItem(
		name=node.get("name") or "",
		html_url=node.get("url") or "",
		description=node.get("description"),
		stargazers_count=node.get("stargazerCount") or 0,
		forks_count=node.get("forkCount") or 0,
		language=language.get("name"),
		homepage=node.get("homepageUrl") or None,
	)


#============================================
def fetch_pinned(client: github_client.GitHubClient, config: run_config.CollectorConfig, log_fn) -> list[PinnedItem]:
	"""
	Fetch pinned repositories when enabled; failures only cost the list.
	"""
	if not config.pinned_enabled:
		return []
	if not config.token:
		log_fn("Skipping pinned items: GITHUB_PINNED is set but no token is available.")
		return []
	try:
		nodes = client.fetch_pinned_items(config.user, first=PINNED_ITEM_COUNT)
	except github_client.RateLimitError:
		raise
	except (github_client.FetchError, OSError, ValueError) as error:
		log_fn(f"WARNING: pinned items query failed, continuing without them: {error}")
		return []
	return [normalize_pinned_item(node) for node in nodes[:PINNED_ITEM_COUNT]]


#============================================
def collect_cache(
	client: github_client.GitHubClient,
	config: run_config.CollectorConfig,
	log_fn,
	now: datetime | None = None,
) -> CacheDocument:
	"""
	Run every fetch step in order and assemble the cache document in memory.
	"""
	user = config.user
	profile = client.get_user(user)
	display_name = profile.get("name") or profile.get("login") or user
	log_fn(f"Found GitHub user {user} ({display_name}), public repos: {profile.get('public_repos', '?')}")

	repos = [normalize_repo(repo) for repo in client.list_repos(user, config.limit)][: config.limit]
	log_fn(f"Collected {len(repos)} repository record(s).")
	events = [normalize_event(event) for event in client.list_public_events(user, config.limit)][: config.limit]
	log_fn(f"Collected {len(events)} event record(s).")
	prs = [normalize_pull_request(item) for item in client.search_pull_requests(user, config.limit)][: config.limit]
	merged_count = sum(1 for pr in prs if pr.merged_at)
	log_fn(f"Collected {len(prs)} pull request record(s), {merged_count} merged.")
	pinned = fetch_pinned(client, config, log_fn)
	if config.pinned_requested:
		log_fn(f"Collected {len(pinned)} pinned item(s).")

	document = CacheDocument(
		fetched_at=(now or utc_now()).isoformat(),
		user=user,
		rate_limit=client.rate_limit,
		repos=repos,
		events=events,
		prs=prs,
		pinned=pinned,
	)
	return document


#============================================
def build_preview(document: CacheDocument) -> dict:
	"""
	Shrink every list to its first entries for dry-run output.
	"""
	preview = document.to_dict()
	for key in ("repos", "events", "prs", "pinned"):
		preview[key] = preview[key][:PREVIEW_ITEM_COUNT]
	return preview


#============================================
def run(config: run_config.CollectorConfig, client: github_client.GitHubClient, log_fn) -> CacheDocument:
	"""
	Collect the cache document and either write it or print a preview.
	"""
	document = collect_cache(client, config, log_fn)
	if config.dry_run:
		log_fn("Dry run: cache file not written. Preview follows.")
		print(json.dumps(build_preview(document), ensure_ascii=False, indent=2))
	else:
		size = cache_models.write_cache(config.output_path, document)
		log_fn(f"Wrote {os.path.abspath(config.output_path)} ({size} bytes)")
	usage = client.api_usage_snapshot()
	log_fn(f"GitHub API usage: calls={usage.get('api_call_count', 0)}")
	return document


#============================================
def main(argv: list[str] | None = None, environ: dict | None = None) -> int:
	"""
	Run the Collector and return the process exit code.
	"""
	args = parse_args(argv)
	env = dict(os.environ) if environ is None else environ
	try:
		settings, settings_path = pipeline_settings.load_settings(args.settings)
		config = run_config.build_collector_config(args, env, settings)
		log_step(f"Using settings file: {settings_path}")
		log_step(f"Using GitHub user: {config.user} (limit {config.limit})")
		if config.token:
			log_step("Using authenticated GitHub API mode.")
		else:
			log_step("Using unauthenticated GitHub API mode (lower rate limit).")
		client = github_client.GitHubClient(
			config.token,
			log_fn=log_step,
			timeout=config.timeout_seconds,
		)
		run(config, client, log_step)
	except (pipeline_settings.ConfigError, github_client.FetchError) as error:
		console_log.log_error(JOB_NAME, str(error))
		return 1
	except OSError as error:
		console_log.log_error(JOB_NAME, f"request or file error: {error}")
		return 1
	return 0


if __name__ == "__main__":
	sys.exit(main())
