import os
import sys
from types import SimpleNamespace

import pytest
import requests


REPO_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
PIPELINE_DIR = os.path.join(REPO_ROOT, "pipeline")
if PIPELINE_DIR not in sys.path:
	sys.path.insert(0, PIPELINE_DIR)

from foliolib import digest_llm
from foliolib.digest_heuristics import HeuristicDraft
from foliolib.digest_llm import RewriteOutcome
from foliolib.run_config import LLMProviderConfig


DRAFT = HeuristicDraft(
	highlights=["- **Fix bug** (#42) in [me/proj](https://github.com/me/proj)"],
	changelog="### me/proj\n- Merged #42: Fix bug",
)
PROVIDER = LLMProviderConfig(
	name="openai",
	api_key="sk-test",
	base_url="https://api.openai.com/v1",
	model="gpt-4o-mini",
)


#============================================
class FakeTransport:
	"""
	Transport double returning a canned reply or raising.
	"""

	def __init__(self, reply: str = "", error: Exception | None = None):
		self.reply = reply
		self.error = error
		self.prompts = []

	def generate(self, prompt, *, purpose, max_tokens):
		self.prompts.append(prompt)
		if self.error is not None:
			raise self.error
		return self.reply


#============================================
def collect_logs():
	lines = []
	return lines, lines.append


#============================================
def test_parse_rewrite_response_both_sections() -> None:
	"""
	Bullets after HIGHLIGHTS and text after CHANGELOG are returned.
	"""
	reply = (
		"Sure!\n===HIGHLIGHTS===\n- One\nnot a bullet\n  - Two\n"
		"===CHANGELOG===\n### me/proj\n- Did things\n"
	)
	highlights, changelog = digest_llm.parse_rewrite_response(reply)
	assert highlights == ["- One", "- Two"]
	assert changelog == "### me/proj\n- Did things"


#============================================
def test_parse_rewrite_response_without_markers() -> None:
	"""
	A reply lacking both markers yields nothing usable.
	"""
	highlights, changelog = digest_llm.parse_rewrite_response("- a bullet\n- another")
	assert highlights == []
	assert changelog == ""


#============================================
def test_rewrite_no_credential_keeps_draft() -> None:
	"""
	No provider configured means the heuristic draft, tagged heuristic.
	"""
	result = digest_llm.rewrite_digest(DRAFT, "2025-34", ())
	assert result.outcome == RewriteOutcome.NO_CREDENTIAL
	assert result.highlights == DRAFT.highlights
	assert result.highlights_source == "heuristic"
	assert result.changelog_source == "heuristic"


#============================================
def test_rewrite_disabled() -> None:
	"""
	--no-ai skips the model even with a credential.
	"""
	transport = FakeTransport(reply="===HIGHLIGHTS===\n- x\n===CHANGELOG===\ny")
	result = digest_llm.rewrite_digest(DRAFT, "2025-34", (PROVIDER,), ai_enabled=False, transport=transport)
	assert result.outcome == RewriteOutcome.DISABLED
	assert transport.prompts == []


#============================================
def test_rewrite_accepted() -> None:
	"""
	A well-formed reply replaces both parts and tags both ai-generated.
	"""
	transport = FakeTransport(reply="===HIGHLIGHTS===\n- Shipped a fix\n===CHANGELOG===\n### me/proj\n- Fixed a bug")
	result = digest_llm.rewrite_digest(DRAFT, "2025-34", (PROVIDER,), transport=transport)
	assert result.outcome == RewriteOutcome.ACCEPTED
	assert result.highlights == ["- Shipped a fix"]
	assert result.changelog == "### me/proj\n- Fixed a bug"
	assert result.highlights_source == "ai-generated"
	assert result.changelog_source == "ai-generated"
	assert "#42" in transport.prompts[0]
	assert "2025-34" in transport.prompts[0]


#============================================
def test_rewrite_missing_markers_falls_back_with_warning() -> None:
	"""
	No delimiters at all keeps the whole draft and logs a warning.
	"""
	lines, log_fn = collect_logs()
	transport = FakeTransport(reply="Here is your digest:\n- something")
	result = digest_llm.rewrite_digest(DRAFT, "2025-34", (PROVIDER,), log_fn=log_fn, transport=transport)
	assert result.outcome == RewriteOutcome.MALFORMED_RESPONSE
	assert result.highlights == DRAFT.highlights
	assert result.changelog == DRAFT.changelog
	assert result.highlights_source == "heuristic"
	assert result.changelog_source == "heuristic"
	assert any(line.startswith("WARNING:") for line in lines)


#============================================
def test_rewrite_partial_changelog_only() -> None:
	"""
	Empty highlights keep the draft highlights but accept the model changelog.
	"""
	lines, log_fn = collect_logs()
	transport = FakeTransport(reply="===HIGHLIGHTS===\n(nothing)\n===CHANGELOG===\n### me/proj\n- Tidied")
	result = digest_llm.rewrite_digest(DRAFT, "2025-34", (PROVIDER,), log_fn=log_fn, transport=transport)
	assert result.outcome == RewriteOutcome.PARTIAL
	assert result.highlights == DRAFT.highlights
	assert result.highlights_source == "heuristic"
	assert result.changelog == "### me/proj\n- Tidied"
	assert result.changelog_source == "ai-generated"
	assert any("no highlight bullets" in line for line in lines)


#============================================
def test_rewrite_call_failure_and_empty_reply() -> None:
	"""
	Transport errors and empty replies both fall back silently.
	"""
	failing = FakeTransport(error=requests.ConnectionError("offline"))
	result = digest_llm.rewrite_digest(DRAFT, "2025-34", (PROVIDER,), transport=failing)
	assert result.outcome == RewriteOutcome.CALL_FAILED
	assert result.changelog == DRAFT.changelog

	empty = FakeTransport(reply="   \n")
	result = digest_llm.rewrite_digest(DRAFT, "2025-34", (PROVIDER,), transport=empty)
	assert result.outcome == RewriteOutcome.EMPTY_RESPONSE


#============================================
def test_prompt_caps_changelog_length() -> None:
	"""
	The changelog sent to the model is capped at 4000 characters.
	"""
	draft = HeuristicDraft(highlights=[], changelog="A" * 5000 + "TAIL")
	prompt = digest_llm.build_rewrite_prompt(draft, "2025-34")
	assert "A" * 4000 in prompt
	assert "A" * 4001 not in prompt
	assert "TAIL" not in prompt


#============================================
def test_chat_transport_posts_and_reads_content() -> None:
	"""
	The transport posts a chat request and returns the first choice text.
	"""
	calls = []

	class StubSession:
		def post(self, url, json=None, headers=None, timeout=None):
			calls.append({"url": url, "json": json, "headers": headers})
			return SimpleNamespace(
				status_code=200,
				text="",
				json=lambda: {"choices": [{"message": {"content": "hello"}}]},
			)

	transport = digest_llm.ChatCompletionsTransport(PROVIDER, session=StubSession())
	reply = transport.generate("prompt", purpose="test", max_tokens=50)
	assert reply == "hello"
	assert calls[0]["url"] == "https://api.openai.com/v1/chat/completions"
	assert calls[0]["headers"]["Authorization"] == "Bearer sk-test"
	assert calls[0]["json"]["model"] == "gpt-4o-mini"
	assert calls[0]["json"]["max_tokens"] == 50


#============================================
def test_chat_transport_error_status_raises() -> None:
	"""
	Non-success statuses raise TransportError.
	"""
	class StubSession:
		def post(self, url, json=None, headers=None, timeout=None):
			return SimpleNamespace(status_code=500, text="oops", json=lambda: {})

	transport = digest_llm.ChatCompletionsTransport(PROVIDER, session=StubSession())
	raised = False
	try:
		transport.generate("prompt", purpose="test", max_tokens=50)
	except digest_llm.TransportError as error:
		raised = "500" in str(error)
	assert raised


#============================================
def stub_session_returning(body):
	class StubSession:
		def post(self, url, json=None, headers=None, timeout=None):
			return SimpleNamespace(status_code=200, text="", json=lambda: body)
	return StubSession()


#============================================
@pytest.mark.parametrize("body", [
	{"choices": ["not a dict"]},
	{"choices": {"a": 1}},
	{"choices": [{"message": "text"}]},
	["choices"],
])
def test_chat_transport_malformed_choices_raise(body) -> None:
	"""
	Replies whose choices are not chat messages raise TransportError.
	"""
	transport = digest_llm.ChatCompletionsTransport(PROVIDER, session=stub_session_returning(body))
	with pytest.raises(digest_llm.TransportError):
		transport.generate("prompt", purpose="test", max_tokens=50)


#============================================
def test_rewrite_malformed_choices_falls_back() -> None:
	"""
	A malformed chat body keeps the heuristic draft and logs a warning.
	"""
	transport = digest_llm.ChatCompletionsTransport(
		PROVIDER,
		session=stub_session_returning({"choices": ["not a dict"]}),
	)
	lines, log_fn = collect_logs()
	result = digest_llm.rewrite_digest(DRAFT, "2025-34", (PROVIDER,), log_fn=log_fn, transport=transport)
	assert result.outcome == RewriteOutcome.CALL_FAILED
	assert result.highlights == DRAFT.highlights
	assert result.highlights_source == "heuristic"
	assert any(line.startswith("WARNING:") for line in lines)
