"""Record types for the GitHub activity cache document.

The Collector writes one CacheDocument as pretty-printed JSON and the
Digest Builder reads it back. Root keys are camelCase because the site's
status endpoint reads `user`, `fetchedAt`, `repos`, `events` and `prs`
straight from the file. New fields are only ever appended.
"""

# Standard Library
import json
import os
import tempfile
from dataclasses import asdict
from dataclasses import dataclass
from dataclasses import field
from urllib.parse import urlparse


#============================================
class MissingCacheError(FileNotFoundError):
	"""
	Raised when the cache document has not been written yet.
	"""


#============================================
class CorruptCacheError(RuntimeError):
	"""
	Raised when the cache document cannot be parsed.
	"""


#============================================
def _text(data: dict, key: str) -> str | None:
	"""
	Read an optional string field, rejecting other JSON types.
	"""
	value = data.get(key)
	if value is None or isinstance(value, str):
		return value
	raise TypeError(f"field '{key}' must be a string, got {type(value).__name__}")


#============================================
def _count(data: dict, key: str) -> int:
	"""
	Read an integer field, treating a missing value as 0.
	"""
	value = data.get(key)
	if value is None:
		return 0
	if isinstance(value, bool):
		raise TypeError(f"field '{key}' must be an integer, got bool")
	return int(value)


#============================================
def _text_list(data: dict, key: str) -> list[str]:
	value = data.get(key)
	if value is None:
		return []
	if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
		raise TypeError(f"field '{key}' must be a list of strings")
	return list(value)


#============================================
@dataclass
class RepositoryRecord:
	id: int
	name: str
	full_name: str
	html_url: str
	description: str | None = None
	stargazers_count: int = 0
	forks_count: int = 0
	language: str | None = None
	topics: list[str] = field(default_factory=list)
	homepage: str | None = None
	archived: bool = False
	disabled: bool = False
	pushed_at: str | None = None
	updated_at: str | None = None
	created_at: str | None = None
	owner_login: str | None = None
	visibility: str | None = None

	@classmethod
	def from_dict(cls, data: dict) -> "RepositoryRecord":
		return cls(
			id=_count(data, "id"),
			name=_text(data, "name") or "",
			full_name=_text(data, "full_name") or "",
			html_url=_text(data, "html_url") or "",
			description=_text(data, "description"),
			stargazers_count=_count(data, "stargazers_count"),
			forks_count=_count(data, "forks_count"),
			language=_text(data, "language"),
			topics=_text_list(data, "topics"),
			homepage=_text(data, "homepage"),
			archived=bool(data.get("archived")),
			disabled=bool(data.get("disabled")),
			pushed_at=_text(data, "pushed_at"),
			updated_at=_text(data, "updated_at"),
			created_at=_text(data, "created_at"),
			owner_login=_text(data, "owner_login"),
			visibility=_text(data, "visibility"),
		)

	def to_dict(self) -> dict:
		return asdict(self)


#============================================
@dataclass
class EventRecord:
	id: str
	type: str
	created_at: str | None
	repo_name: str
	repo_url: str
	actor_login: str | None = None
	payload: dict = field(default_factory=dict)

	@classmethod
	def from_dict(cls, data: dict) -> "EventRecord":
		payload = data.get("payload")
		return cls(
			id=str(data.get("id") or ""),
			type=_text(data, "type") or "",
			created_at=_text(data, "created_at"),
			repo_name=_text(data, "repo_name") or "",
			repo_url=_text(data, "repo_url") or "",
			actor_login=_text(data, "actor_login"),
			payload=payload if isinstance(payload, dict) else {},
		)

	def to_dict(self) -> dict:
		return asdict(self)


#============================================
def repo_full_name_from_url(url: str) -> str:
	"""
	Take owner/name from the last two path segments of a repository URL.

	Returns an empty string when the URL does not carry two segments.
	"""
	path = urlparse(url or "").path
	segments = [segment for segment in path.split("/") if segment]
	if len(segments) < 2:
		return ""
	return f"{segments[-2]}/{segments[-1]}"


#============================================
@dataclass
class PullRequestRecord:
	id: int
	number: int
	title: str
	state: str
	html_url: str
	repository_url: str
	created_at: str | None = None
	updated_at: str | None = None
	closed_at: str | None = None
	merged_at: str | None = None
	author_login: str | None = None

	@property
	def repo_full_name(self) -> str:
		return repo_full_name_from_url(self.repository_url)

	@classmethod
	def from_dict(cls, data: dict) -> "PullRequestRecord":
		return cls(
			id=_count(data, "id"),
			number=_count(data, "number"),
			title=_text(data, "title") or "",
			state=_text(data, "state") or "",
			html_url=_text(data, "html_url") or "",
			repository_url=_text(data, "repository_url") or "",
			created_at=_text(data, "created_at"),
			updated_at=_text(data, "updated_at"),
			closed_at=_text(data, "closed_at"),
			merged_at=_text(data, "merged_at"),
			author_login=_text(data, "author_login"),
		)

	def to_dict(self) -> dict:
		return asdict(self)


#============================================
@dataclass
class PinnedItem:
	name: str
	html_url: str
	description: str | None = None
	stargazers_count: int = 0
	forks_count: int = 0
	language: str | None = None
	homepage: str | None = None

	@classmethod
	def from_dict(cls, data: dict) -> "PinnedItem":
		return cls(
			name=_text(data, "name") or "",
			html_url=_text(data, "html_url") or "",
			description=_text(data, "description"),
			stargazers_count=_count(data, "stargazers_count"),
			forks_count=_count(data, "forks_count"),
			language=_text(data, "language"),
			homepage=_text(data, "homepage"),
		)

	def to_dict(self) -> dict:
		return asdict(self)


#============================================
@dataclass
class RateLimitSnapshot:
	limit: int
	remaining: int
	reset: int

	@classmethod
	def from_dict(cls, data: dict) -> "RateLimitSnapshot":
		return cls(
			limit=_count(data, "limit"),
			remaining=_count(data, "remaining"),
			reset=_count(data, "reset"),
		)

	def to_dict(self) -> dict:
		return asdict(self)


#============================================
@dataclass
class CacheDocument:
	fetched_at: str
	user: str
	rate_limit: RateLimitSnapshot | None = None
	repos: list[RepositoryRecord] = field(default_factory=list)
	events: list[EventRecord] = field(default_factory=list)
	prs: list[PullRequestRecord] = field(default_factory=list)
	pinned: list[PinnedItem] = field(default_factory=list)

	@classmethod
	def from_dict(cls, data: dict) -> "CacheDocument":
		rate_data = data.get("rateLimit")
		return cls(
			fetched_at=_text(data, "fetchedAt") or "",
			user=_text(data, "user") or "",
			rate_limit=RateLimitSnapshot.from_dict(rate_data) if isinstance(rate_data, dict) else None,
			repos=[RepositoryRecord.from_dict(item) for item in _dict_items(data, "repos")],
			events=[EventRecord.from_dict(item) for item in _dict_items(data, "events")],
			prs=[PullRequestRecord.from_dict(item) for item in _dict_items(data, "prs")],
			pinned=[PinnedItem.from_dict(item) for item in _dict_items(data, "pinned")],
		)

	def to_dict(self) -> dict:
		return {
			"fetchedAt": self.fetched_at,
			"user": self.user,
			"rateLimit": self.rate_limit.to_dict() if self.rate_limit is not None else None,
			"repos": [repo.to_dict() for repo in self.repos],
			"events": [event.to_dict() for event in self.events],
			"prs": [pr.to_dict() for pr in self.prs],
			"pinned": [item.to_dict() for item in self.pinned],
		}


#============================================
def _dict_items(data: dict, key: str) -> list[dict]:
	"""
	Return the mapping entries of one root list, rejecting non-list values.
	"""
	value = data.get(key)
	if value is None:
		return []
	if not isinstance(value, list):
		raise CorruptCacheError(f"Cache field '{key}' must be a list, got {type(value).__name__}.")
	return [item for item in value if isinstance(item, dict)]


#============================================
def dump_cache_text(document: CacheDocument) -> str:
	"""
	Serialize a cache document as pretty-printed JSON text.
	"""
	return json.dumps(document.to_dict(), ensure_ascii=False, indent=2) + "\n"


#============================================
def write_cache(path: str, document: CacheDocument) -> int:
	"""
	Write the cache document atomically and return its size in bytes.
	"""
	text = dump_cache_text(document)
	data = text.encode("utf-8")
	dir_name = os.path.dirname(os.path.abspath(path))
	os.makedirs(dir_name, exist_ok=True)
	# temp file in the same directory, then rename over the target
	fd, tmp_path = tempfile.mkstemp(dir=dir_name, suffix=".json.tmp")
	with os.fdopen(fd, "wb") as handle:
		handle.write(data)
	os.replace(tmp_path, path)
	return len(data)


#============================================
def read_cache(path: str) -> CacheDocument:
	"""
	Load the cache document written by the Collector.
	"""
	if not os.path.isfile(path):
		raise MissingCacheError(
			f"Cache file not found: {path}. "
			+ "Run fetch_github_cache.py first to create it."
		)
	try:
		with open(path, "r", encoding="utf-8") as handle:
			data = json.loads(handle.read())
	except (UnicodeDecodeError, json.JSONDecodeError) as error:
		raise CorruptCacheError(f"Corrupt cache file {path}: {error}") from error
	if not isinstance(data, dict):
		raise CorruptCacheError(f"Corrupt cache file {path}: root must be a JSON object.")
	try:
		return CacheDocument.from_dict(data)
	except (TypeError, ValueError) as error:
		raise CorruptCacheError(f"Corrupt cache file {path}: {error}") from error


#============================================
@dataclass
class PushPayload:
	ref: str
	commit_count: int


@dataclass
class PullRequestPayload:
	action: str
	number: int
	title: str
	html_url: str
	merged: bool


@dataclass
class IssuesPayload:
	action: str
	number: int
	title: str
	html_url: str


@dataclass
class ReleasePayload:
	action: str
	tag_name: str
	name: str
	html_url: str


@dataclass
class CreatePayload:
	ref_type: str
	ref: str


@dataclass
class UnknownPayload:
	event_type: str
	raw: dict


#============================================
def _branch_name(ref: str) -> str:
	prefix = "refs/heads/"
	if ref.startswith(prefix):
		return ref[len(prefix):]
	return ref


#============================================
def _mapping(value) -> dict:
	return value if isinstance(value, dict) else {}


#============================================
def _label(mapping: dict, key: str) -> str:
	"""
	Read a display string from an untyped payload mapping.
	"""
	value = mapping.get(key)
	if value is None or isinstance(value, (dict, list)):
		return ""
	return str(value)


#============================================
def _number(value) -> int:
	if isinstance(value, int) and not isinstance(value, bool):
		return value
	return 0


#============================================
def parse_event_payload(event: EventRecord):
	"""
	Turn an event's raw payload into the variant for its type tag.

	Unrecognized event types come back as UnknownPayload so newer GitHub
	event kinds pass through without breaking the digest. Payloads are
	GitHub's own untyped data, so odd shapes degrade to empty fields.
	"""
	payload = _mapping(event.payload)
	if event.type == "PushEvent":
		commits = payload.get("commits")
		commit_count = payload.get("size")
		if not isinstance(commit_count, int) or isinstance(commit_count, bool):
			commit_count = len(commits) if isinstance(commits, list) else 0
		return PushPayload(
			ref=_branch_name(_label(payload, "ref")),
			commit_count=commit_count,
		)
	if event.type == "PullRequestEvent":
		pr = _mapping(payload.get("pull_request"))
		return PullRequestPayload(
			action=_label(payload, "action"),
			number=_number(payload.get("number")) or _number(pr.get("number")),
			title=_label(pr, "title"),
			html_url=_label(pr, "html_url"),
			merged=bool(pr.get("merged")),
		)
	if event.type == "IssuesEvent":
		issue = _mapping(payload.get("issue"))
		return IssuesPayload(
			action=_label(payload, "action"),
			number=_number(issue.get("number")),
			title=_label(issue, "title"),
			html_url=_label(issue, "html_url"),
		)
	if event.type == "ReleaseEvent":
		release = _mapping(payload.get("release"))
		return ReleasePayload(
			action=_label(payload, "action"),
			tag_name=_label(release, "tag_name"),
			name=_label(release, "name"),
			html_url=_label(release, "html_url"),
		)
	if event.type == "CreateEvent":
		return CreatePayload(
			ref_type=_label(payload, "ref_type"),
			ref=_label(payload, "ref"),
		)
	return UnknownPayload(event_type=event.type, raw=dict(payload))
