"""Rule-based weekly highlights and changelog.

This draft is always computed first. The optional model rewrite in
digest_llm can replace parts of it but never edits it.
"""

# Standard Library
from dataclasses import dataclass
from dataclasses import field
from datetime import datetime

# local repo modules
from foliolib import activity_window
from foliolib.cache_models import CacheDocument
from foliolib.cache_models import CreatePayload
from foliolib.cache_models import EventRecord
from foliolib.cache_models import IssuesPayload
from foliolib.cache_models import PullRequestPayload
from foliolib.cache_models import PullRequestRecord
from foliolib.cache_models import PushPayload
from foliolib.cache_models import ReleasePayload
from foliolib.cache_models import RepositoryRecord
from foliolib.cache_models import parse_event_payload


MIN_HIGHLIGHTS = 3
UNKNOWN_REPO_LABEL = "unknown"
EMPTY_CHANGELOG_LINE = "- Nothing relevant this week."
CHANGELOG_EVENT_TYPES = {
	"PushEvent",
	"IssuesEvent",
	"CreateEvent",
	"ReleaseEvent",
	"PullRequestEvent",
}


#============================================
@dataclass
class HeuristicDraft:
	highlights: list[str]
	changelog: str
	changelog_repos: list[str] = field(default_factory=list)


#============================================
def repo_link(full_name: str) -> str:
	"""
	Markdown link to a repository by owner/name.
	"""
	if not full_name:
		return UNKNOWN_REPO_LABEL
	return f"[{full_name}](https://github.com/{full_name})"


#============================================
def pr_highlight_bullet(pr: PullRequestRecord) -> str:
	return (
		f"- **{pr.title}** (#{pr.number}) in {repo_link(pr.repo_full_name)}"
		+ f" · [PR]({pr.html_url})"
	)


#============================================
def repo_highlight_bullet(repo: RepositoryRecord) -> str:
	parts = [f"- Worked on [{repo.full_name or repo.name}]({repo.html_url})"]
	if repo.language:
		parts.append(f"`{repo.language}`")
	if repo.homepage:
		parts.append(f"[site]({repo.homepage})")
	return " · ".join(parts)


#============================================
def release_highlight_bullet(event: EventRecord, release: ReleasePayload) -> str:
	label = release.tag_name or release.name or "a new release"
	line = f"- Released **{label}** in {repo_link(event.repo_name)}"
	if release.html_url:
		line += f" · [notes]({release.html_url})"
	return line


#============================================
def latest_release(events: list[EventRecord]) -> tuple[EventRecord, ReleasePayload] | None:
	"""
	Find the first release event in delivery (newest-first) order.
	"""
	for event in events:
		if event.type != "ReleaseEvent":
			continue
		return event, parse_event_payload(event)
	return None


#============================================
def build_highlights(cache: CacheDocument, max_highlights: int, now: datetime) -> list[str]:
	"""
	Pick up to max(3, max_highlights) highlight bullets.

	Merged pull requests come first (at most max_highlights of them), then
	recently touched repositories, then at most one release. The floor of
	three means a max_highlights below three can still yield three bullets.
	"""
	cap = max(MIN_HIGHLIGHTS, max_highlights)
	bullets = [pr_highlight_bullet(pr) for pr in activity_window.recent_merged_prs(cache, now)[:max_highlights]]
	for repo in activity_window.recent_repos(cache, now):
		if len(bullets) >= cap:
			break
		bullets.append(repo_highlight_bullet(repo))
	if len(bullets) < cap:
		found = latest_release(activity_window.recent_events(cache, now))
		if found is not None:
			event, release = found
			bullets.append(release_highlight_bullet(event, release))
	return bullets[:cap]


#============================================
def pr_changelog_bullet(pr: PullRequestRecord) -> str:
	return f"- Merged #{pr.number}: {pr.title} ([PR]({pr.html_url}))"


#============================================
def event_changelog_bullet(event: EventRecord) -> str:
	"""
	Render one activity event as a changelog bullet.
	"""
	payload = parse_event_payload(event)
	if isinstance(payload, PushPayload):
		noun = "commit" if payload.commit_count == 1 else "commits"
		line = f"- Pushed {payload.commit_count} {noun}"
		if payload.ref:
			line += f" to `{payload.ref}`"
		return line
	if isinstance(payload, PullRequestPayload):
		action = payload.action
		if action == "closed" and payload.merged:
			action = "merged"
		line = f"- {action.capitalize() or 'Updated'} PR #{payload.number}: {payload.title}"
		if payload.html_url:
			line += f" ([PR]({payload.html_url}))"
		return line
	if isinstance(payload, IssuesPayload):
		line = f"- {payload.action.capitalize() or 'Updated'} issue #{payload.number}: {payload.title}"
		if payload.html_url:
			line += f" ([issue]({payload.html_url}))"
		return line
	if isinstance(payload, ReleasePayload):
		line = f"- Released {payload.tag_name or payload.name}"
		if payload.html_url:
			line += f" ([notes]({payload.html_url}))"
		return line
	if isinstance(payload, CreatePayload):
		if payload.ref:
			return f"- Created {payload.ref_type} `{payload.ref}`"
		return f"- Created {payload.ref_type or 'repository'}"
	return f"- {event.type}"


#============================================
def group_changelog_bullets(cache: CacheDocument, now: datetime) -> dict[str, list[str]]:
	"""
	Partition merged-PR and event bullets by owning repository.
	"""
	groups: dict[str, list[str]] = {}
	for pr in activity_window.recent_merged_prs(cache, now):
		key = pr.repo_full_name or UNKNOWN_REPO_LABEL
		groups.setdefault(key, []).append(pr_changelog_bullet(pr))
	for event in activity_window.recent_events(cache, now):
		if event.type not in CHANGELOG_EVENT_TYPES:
			continue
		key = event.repo_name or UNKNOWN_REPO_LABEL
		groups.setdefault(key, []).append(event_changelog_bullet(event))
	return groups


#============================================
def render_changelog(groups: dict[str, list[str]]) -> str:
	"""
	Render the per-repository changelog, sections sorted by repository name.
	"""
	if not groups:
		return EMPTY_CHANGELOG_LINE
	sections = []
	for repo_name in sorted(groups):
		lines = [f"### {repo_name}"] + groups[repo_name]
		sections.append("\n".join(lines))
	return "\n\n".join(sections)


#============================================
def build_changelog(cache: CacheDocument, now: datetime) -> str:
	return render_changelog(group_changelog_bullets(cache, now))


#============================================
def build_heuristic_draft(cache: CacheDocument, max_highlights: int, now: datetime) -> HeuristicDraft:
	groups = group_changelog_bullets(cache, now)
	return HeuristicDraft(
		highlights=build_highlights(cache, max_highlights, now),
		changelog=render_changelog(groups),
		changelog_repos=sorted(groups),
	)
