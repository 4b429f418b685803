"""GitHub REST and GraphQL access for the Collector.

Every call goes through request_json, which refuses to send once the last
response reported an exhausted rate-limit budget.
"""

# Standard Library
from datetime import datetime
from datetime import timezone

# PIP3 modules
import requests

# local repo modules
from foliolib.cache_models import RateLimitSnapshot


API_ROOT = "https://api.github.com"
GRAPHQL_URL = "https://api.github.com/graphql"
MAX_PER_PAGE = 100

PINNED_ITEMS_QUERY = """
query($login: String!, $first: Int!) {
  user(login: $login) {
    pinnedItems(first: $first, types: REPOSITORY) {
      nodes {
        ... on Repository {
          name
          description
          stargazerCount
          forkCount
          url
          homepageUrl
          primaryLanguage { name }
        }
      }
    }
  }
}
"""


#============================================
class FetchError(RuntimeError):
	"""
	Raised when GitHub answers with a non-success status.
	"""

	def __init__(self, message: str, status: int | None = None, body: str = ""):
		super().__init__(message)
		self.status = status
		self.body = body


#============================================
class RateLimitError(FetchError):
	"""
	Raised when the last reported rate-limit budget is used up.
	"""


#============================================
class GitHubClient:
	"""
	Thin requests wrapper for the Collector's GitHub calls.
	"""

	def __init__(self, token: str, log_fn=None, session=None, timeout: int = 30):
		self.token = token
		self.log_fn = log_fn
		self.timeout = timeout
		self.session = session if session is not None else requests.Session()
		self.rate_limit: RateLimitSnapshot | None = None
		self._api_call_count = 0
		self._api_calls_by_context: dict[str, int] = {}

	#============================================
	def log(self, message: str) -> None:
		"""
		Emit one log line when logger is configured.
		"""
		if self.log_fn is not None:
			self.log_fn(message)

	#============================================
	def build_headers(self) -> dict:
		"""
		Build request headers, adding the bearer token when present.
		"""
		headers = {
			"Accept": "application/vnd.github+json",
			"X-GitHub-Api-Version": "2022-11-28",
		}
		if self.token:
			headers["Authorization"] = f"Bearer {self.token}"
		return headers

	#============================================
	def record_api_call(self, context: str) -> None:
		"""
		Track one outbound GitHub API call.
		"""
		self._api_call_count += 1
		if context not in self._api_calls_by_context:
			self._api_calls_by_context[context] = 0
		self._api_calls_by_context[context] += 1

	#============================================
	def api_usage_snapshot(self) -> dict:
		"""
		Return API call counters for reporting.
		"""
		return {
			"api_call_count": self._api_call_count,
			"api_calls_by_context": dict(self._api_calls_by_context),
		}

	#============================================
	def format_reset_time(self, reset_value: int) -> str:
		"""
		Render an epoch reset value as ISO-8601 UTC.
		"""
		if not reset_value:
			return "unknown"
		return datetime.fromtimestamp(float(reset_value), tz=timezone.utc).isoformat()

	#============================================
	def update_rate_limit(self, headers) -> None:
		"""
		Remember the rate-limit counters GitHub reported on the last response.
		"""
		remaining = headers.get("X-RateLimit-Remaining")
		if remaining is None:
			return
		try:
			snapshot = RateLimitSnapshot(
				limit=int(headers.get("X-RateLimit-Limit") or 0),
				remaining=int(remaining),
				reset=int(headers.get("X-RateLimit-Reset") or 0),
			)
		except ValueError:
			# keep the previous snapshot
			self.log(f"WARNING: ignoring non-numeric rate-limit headers (remaining={remaining!r})")
			return
		self.rate_limit = snapshot

	#============================================
	def check_rate_limit(self, context: str) -> None:
		"""
		Refuse to send a request once the reported budget is exhausted.
		"""
		if self.rate_limit is None:
			return
		if self.rate_limit.remaining > 0:
			return
		reset_text = self.format_reset_time(self.rate_limit.reset)
		raise RateLimitError(
			"GitHub API rate limit exhausted before "
			+ f"{context}; remaining={self.rate_limit.remaining}; reset_at={reset_text}. "
			+ "Set GITHUB_TOKEN for a higher limit or wait for the reset.",
			status=None,
			body="",
		)

	#============================================
	def request_json(self, method: str, url: str, context: str, params: dict | None = None, payload: dict | None = None):
		"""
		Send one guarded request and return the decoded JSON body.
		"""
		self.check_rate_limit(context)
		self.record_api_call(context)
		response = self.session.request(
			method,
			url,
			headers=self.build_headers(),
			params=params,
			json=payload,
			timeout=self.timeout,
		)
		self.update_rate_limit(response.headers)
		if response.status_code >= 400:
			raise FetchError(
				f"GitHub request failed ({context}): status {response.status_code}: {response.text}",
				status=response.status_code,
				body=response.text,
			)
		try:
			return response.json()
		except ValueError as error:
			raise FetchError(
				f"GitHub returned a non-JSON body ({context}): {error}",
				status=response.status_code,
				body=response.text,
			) from error

	#============================================
	def get_paged_list(self, path: str, context: str, limit: int, params: dict | None = None, items_key: str = "") -> list[dict]:
		"""
		Walk numbered pages until limit items are collected or a page runs short.
		"""
		per_page = min(limit, MAX_PER_PAGE)
		items: list[dict] = []
		page = 1
		while len(items) < limit:
			page_params = dict(params or {})
			page_params["per_page"] = per_page
			page_params["page"] = page
			data = self.request_json("GET", f"{API_ROOT}{path}", context, params=page_params)
			if items_key:
				data = data.get(items_key) if isinstance(data, dict) else None
			if not isinstance(data, list):
				raise FetchError(f"Unexpected GitHub response format for {context}.")
			items.extend(item for item in data if isinstance(item, dict))
			if len(data) < per_page:
				break
			page += 1
		return items[:limit]

	#============================================
	def get_user(self, user: str) -> dict:
		"""
		Fetch one user profile.
		"""
		return self.request_json("GET", f"{API_ROOT}/users/{user}", f"GET /users/{user}")

	#============================================
	def list_repos(self, user: str, limit: int) -> list[dict]:
		"""
		List owner repositories, most recently updated first.
		"""
		return self.get_paged_list(
			f"/users/{user}/repos",
			f"GET /users/{user}/repos",
			limit,
			params={"type": "owner", "sort": "updated", "direction": "desc"},
		)

	#============================================
	def list_public_events(self, user: str, limit: int) -> list[dict]:
		"""
		List the user's public activity events, newest first.
		"""
		return self.get_paged_list(
			f"/users/{user}/events/public",
			f"GET /users/{user}/events/public",
			limit,
		)

	#============================================
	def search_pull_requests(self, user: str, limit: int) -> list[dict]:
		"""
		Search public pull requests authored by the user, last updated first.
		"""
		return self.get_paged_list(
			"/search/issues",
			"GET /search/issues",
			limit,
			params={
				"q": f"author:{user} type:pr is:public",
				"sort": "updated",
				"order": "desc",
			},
			items_key="items",
		)

	#============================================
	def fetch_pinned_items(self, user: str, first: int = 6) -> list[dict]:
		"""
		Fetch pinned repositories through the GraphQL endpoint.
		"""
		data = self.request_json(
			"POST",
			GRAPHQL_URL,
			"POST /graphql pinnedItems",
			payload={"query": PINNED_ITEMS_QUERY, "variables": {"login": user, "first": first}},
		)
		errors = data.get("errors") if isinstance(data, dict) else None
		if errors:
			raise FetchError(f"GitHub GraphQL pinnedItems query failed: {errors}")
		user_data = ((data or {}).get("data") or {}).get("user") or {}
		nodes = (user_data.get("pinnedItems") or {}).get("nodes") or []
		return [node for node in nodes if isinstance(node, dict) and node]
