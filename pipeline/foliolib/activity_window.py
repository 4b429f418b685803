"""Recent-activity windows over the cache document.

"Recent" means at most RECENT_WINDOW_DAYS old at the run time, judged from
each record's relevant timestamp. Records without a usable timestamp fall
outside every window.
"""

# Standard Library
from datetime import datetime
from datetime import timedelta
from datetime import timezone

# local repo modules
from foliolib.cache_models import CacheDocument
from foliolib.cache_models import EventRecord
from foliolib.cache_models import PullRequestRecord
from foliolib.cache_models import RepositoryRecord


RECENT_WINDOW_DAYS = 14


#============================================
def utc_now() -> datetime:
	"""
	Return UTC now as a timezone-aware datetime.
	"""
	return datetime.now(timezone.utc)


#============================================
def parse_iso(ts: str | None) -> datetime | None:
	"""
	Parse an ISO timestamp string into a timezone-aware UTC datetime.
	Unparseable text reads as an absent timestamp.
	"""
	if not ts or not isinstance(ts, str):
		return None
	try:
		parsed = datetime.fromisoformat(ts.replace("Z", "+00:00"))
	except ValueError:
		return None
	if parsed.tzinfo is None:
		parsed = parsed.replace(tzinfo=timezone.utc)
	return parsed.astimezone(timezone.utc)


#============================================
def within_last_days(ts: str | None, days: int, now: datetime) -> bool:
	"""
	Check that a timestamp is at most `days` old at `now`.
	"""
	moment = parse_iso(ts)
	if moment is None:
		return False
	return (now - moment) <= timedelta(days=days)


#============================================
def repo_activity_time(repo: RepositoryRecord) -> str | None:
	"""
	Pushed time when it parses, else updated time.
	"""
	if parse_iso(repo.pushed_at) is not None:
		return repo.pushed_at
	return repo.updated_at


#============================================
def recent_repos(cache: CacheDocument, now: datetime, days: int = RECENT_WINDOW_DAYS) -> list[RepositoryRecord]:
	"""
	Repositories touched inside the window, newest first.
	"""
	repos = [
		repo for repo in cache.repos
		if within_last_days(repo_activity_time(repo), days, now)
	]
	# full name first so the stable recency sort keeps ties alphabetical
	repos.sort(key=lambda repo: repo.full_name)
	repos.sort(key=lambda repo: parse_iso(repo_activity_time(repo)), reverse=True)
	return repos


#============================================
def recent_merged_prs(cache: CacheDocument, now: datetime, days: int = RECENT_WINDOW_DAYS) -> list[PullRequestRecord]:
	"""
	Pull requests merged inside the window, most recently merged first.
	"""
	prs = [pr for pr in cache.prs if within_last_days(pr.merged_at, days, now)]
	prs.sort(key=lambda pr: (pr.repo_full_name, pr.number))
	prs.sort(key=lambda pr: parse_iso(pr.merged_at), reverse=True)
	return prs


#============================================
def recent_events(cache: CacheDocument, now: datetime, days: int = RECENT_WINDOW_DAYS) -> list[EventRecord]:
	"""
	Events created inside the window, in the order GitHub delivered them.
	"""
	return [event for event in cache.events if within_last_days(event.created_at, days, now)]
