import os
import sys
from types import SimpleNamespace

import pytest


REPO_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
PIPELINE_DIR = os.path.join(REPO_ROOT, "pipeline")
if PIPELINE_DIR not in sys.path:
	sys.path.insert(0, PIPELINE_DIR)

from foliolib import github_client
from foliolib.cache_models import RateLimitSnapshot


#============================================
def make_response(status_code: int, data, remaining: int | None = 100, text: str = ""):
	"""
	Build a stub requests response.
	"""
	headers = {}
	if remaining is not None:
		headers = {
			"X-RateLimit-Limit": "60",
			"X-RateLimit-Remaining": str(remaining),
			"X-RateLimit-Reset": "1755694800",
		}
	return SimpleNamespace(
		status_code=status_code,
		headers=headers,
		text=text,
		json=lambda: data,
	)


#============================================
class StubSession:
	"""
	Session double that replays queued responses and records calls.
	"""

	def __init__(self, responses: list):
		self.responses = list(responses)
		self.calls = []

	def request(self, method, url, headers=None, params=None, json=None, timeout=None):
		self.calls.append({"method": method, "url": url, "headers": headers, "params": params, "json": json})
		return self.responses.pop(0)


#============================================
def test_update_rate_limit_from_headers() -> None:
	"""
	Rate-limit headers should be captured after each response.
	"""
	session = StubSession([make_response(200, {"login": "me"}, remaining=42)])
	client = github_client.GitHubClient("", session=session)
	client.get_user("me")
	assert client.rate_limit == RateLimitSnapshot(limit=60, remaining=42, reset=1755694800)


#============================================
def test_non_numeric_rate_limit_headers_are_ignored() -> None:
	"""
	Unreadable rate-limit headers keep the last snapshot and log a warning.
	"""
	odd = make_response(200, [], remaining=None)
	odd.headers = {"X-RateLimit-Remaining": "lots", "X-RateLimit-Limit": "60"}
	session = StubSession([make_response(200, {"login": "me"}, remaining=42), odd])
	lines = []
	client = github_client.GitHubClient("", log_fn=lines.append, session=session)
	client.get_user("me")
	assert client.list_repos("me", 10) == []
	assert client.rate_limit.remaining == 42
	assert any("non-numeric rate-limit headers" in line for line in lines)


#============================================
def test_guard_blocks_when_remaining_is_zero() -> None:
	"""
	Once GitHub reports zero remaining calls, no further request is sent.
	"""
	session = StubSession([
		make_response(200, {"login": "me"}, remaining=0),
		make_response(200, []),
	])
	client = github_client.GitHubClient("", session=session)
	client.get_user("me")
	with pytest.raises(github_client.RateLimitError) as excinfo:
		client.list_repos("me", 10)
	assert len(session.calls) == 1
	assert "2025-08-20T13:00:00+00:00" in str(excinfo.value)


#============================================
def test_guard_allows_first_call_without_snapshot() -> None:
	"""
	No snapshot yet means the first call proceeds.
	"""
	client = github_client.GitHubClient("", session=StubSession([]))
	assert client.rate_limit is None
	client.check_rate_limit("unit-test")


#============================================
def test_non_success_raises_fetch_error_with_status_and_body() -> None:
	"""
	A 404 on the profile should surface status and body.
	"""
	session = StubSession([make_response(404, {}, text='{"message": "Not Found"}')])
	client = github_client.GitHubClient("", session=session)
	with pytest.raises(github_client.FetchError) as excinfo:
		client.get_user("ghost")
	assert excinfo.value.status == 404
	assert "404" in str(excinfo.value)
	assert "Not Found" in str(excinfo.value)


#============================================
def test_token_sets_bearer_header() -> None:
	"""
	Authenticated clients send a bearer token.
	"""
	session = StubSession([make_response(200, {"login": "me"})])
	client = github_client.GitHubClient("secret", session=session)
	client.get_user("me")
	assert session.calls[0]["headers"]["Authorization"] == "Bearer secret"
	anonymous = github_client.GitHubClient("", session=StubSession([]))
	assert "Authorization" not in anonymous.build_headers()


#============================================
def test_list_repos_paginates_and_truncates() -> None:
	"""
	Pages are requested until the limit is reached, then truncated.
	"""
	page_one = [{"id": index} for index in range(100)]
	page_two = [{"id": index} for index in range(100, 200)]
	session = StubSession([make_response(200, page_one), make_response(200, page_two)])
	client = github_client.GitHubClient("", session=session)
	repos = client.list_repos("me", 150)
	assert len(repos) == 150
	assert repos[-1]["id"] == 149
	assert [call["params"]["page"] for call in session.calls] == [1, 2]
	assert session.calls[0]["params"]["per_page"] == 100
	assert session.calls[0]["params"]["sort"] == "updated"
	assert session.calls[0]["params"]["direction"] == "desc"


#============================================
def test_search_pull_requests_query() -> None:
	"""
	Pull request search targets public PRs by author, last updated first.
	"""
	session = StubSession([make_response(200, {"total_count": 1, "items": [{"id": 1}]})])
	client = github_client.GitHubClient("", session=session)
	items = client.search_pull_requests("me", 60)
	assert items == [{"id": 1}]
	params = session.calls[0]["params"]
	assert params["q"] == "author:me type:pr is:public"
	assert params["sort"] == "updated"
	assert params["order"] == "desc"


#============================================
def test_fetch_pinned_items_graphql_errors_raise() -> None:
	"""
	GraphQL errors inside a 200 response are reported as FetchError.
	"""
	session = StubSession([make_response(200, {"errors": [{"message": "bad"}]})])
	client = github_client.GitHubClient("secret", session=session)
	with pytest.raises(github_client.FetchError):
		client.fetch_pinned_items("me")
	assert session.calls[0]["method"] == "POST"
	assert session.calls[0]["json"]["variables"] == {"login": "me", "first": 6}


#============================================
def test_api_usage_snapshot_counts_calls() -> None:
	"""
	Each outbound call is counted by context.
	"""
	session = StubSession([make_response(200, {"login": "me"}), make_response(200, [])])
	client = github_client.GitHubClient("", session=session)
	client.get_user("me")
	client.list_public_events("me", 10)
	usage = client.api_usage_snapshot()
	assert usage["api_call_count"] == 2
	assert usage["api_calls_by_context"]["GET /users/me"] == 1


#============================================
def test_non_json_body_raises_fetch_error() -> None:
	"""
	A success status with an unparseable body becomes FetchError.
	"""
	def broken_json():
		raise ValueError("Expecting value")

	response = make_response(200, None, text="<html>")
	response.json = broken_json
	client = github_client.GitHubClient("", session=StubSession([response]))
	with pytest.raises(github_client.FetchError) as excinfo:
		client.get_user("me")
	assert excinfo.value.status == 200
