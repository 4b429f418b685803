"""Optional model rewrite of the heuristic weekly digest.

The draft is sent to an OpenAI-compatible chat completions endpoint and the
reply is parsed from a fixed two-section text protocol. Every failure keeps
the heuristic draft; the reason is reported as a RewriteOutcome.
"""

# Standard Library
import enum
from dataclasses import dataclass

# PIP3 modules
import requests

# local repo modules
from foliolib import prompt_loader
from foliolib.digest_heuristics import HeuristicDraft
from foliolib.run_config import LLMProviderConfig


HIGHLIGHTS_MARKER = "===HIGHLIGHTS==="
CHANGELOG_MARKER = "===CHANGELOG==="
MAX_CHANGELOG_PROMPT_CHARS = 4000
SOURCE_HEURISTIC = "heuristic"
SOURCE_AI = "ai-generated"
SYSTEM_MESSAGE = "You rewrite developer activity digests. Follow the requested output format exactly."


#============================================
class TransportError(RuntimeError):
	"""
	Raised when the chat endpoint answers with an unusable response.
	"""


#============================================
class RewriteOutcome(enum.Enum):
	DISABLED = "disabled"
	NO_CREDENTIAL = "no credential"
	CALL_FAILED = "call failed"
	EMPTY_RESPONSE = "empty response"
	MALFORMED_RESPONSE = "malformed response"
	PARTIAL = "partial"
	ACCEPTED = "accepted"


#============================================
@dataclass
class RewriteResult:
	highlights: list[str]
	changelog: str
	highlights_source: str
	changelog_source: str
	outcome: RewriteOutcome
	reason: str = ""


#============================================
class ChatCompletionsTransport:
	"""
	POST one prompt to an OpenAI-compatible /chat/completions endpoint.
	"""

	def __init__(self, provider: LLMProviderConfig, session=None) -> None:
		self.provider = provider
		self.name = provider.name
		self.session = session if session is not None else requests.Session()

	def endpoint(self) -> str:
		return f"{self.provider.base_url.rstrip('/')}/chat/completions"

	def generate(self, prompt: str, *, purpose: str, max_tokens: int) -> str:
		payload = {
			"model": self.provider.model,
			"messages": [
				{"role": "system", "content": SYSTEM_MESSAGE},
				{"role": "user", "content": prompt},
			],
			"max_tokens": max_tokens,
			"temperature": 0.4,
		}
		headers = {
			"Authorization": f"Bearer {self.provider.api_key}",
			"Content-Type": "application/json",
		}
		response = self.session.post(
			self.endpoint(),
			json=payload,
			headers=headers,
			timeout=self.provider.timeout_seconds,
		)
		if response.status_code >= 400:
			raise TransportError(
				f"{self.name} chat error ({purpose}): status {response.status_code}: {response.text}"
			)
		try:
			parsed = response.json()
		except ValueError as error:
			raise TransportError(f"{self.name} chat returned non-JSON body ({purpose})") from error
		if not isinstance(parsed, dict):
			raise TransportError(f"{self.name} chat returned a non-object body ({purpose})")
		choices = parsed.get("choices")
		if not choices:
			return ""
		if not isinstance(choices, list) or not isinstance(choices[0], dict):
			raise TransportError(f"{self.name} chat returned malformed choices ({purpose})")
		message = choices[0].get("message") or {}
		if not isinstance(message, dict):
			raise TransportError(f"{self.name} chat returned a malformed message ({purpose})")
		content = message.get("content") or ""
		return content if isinstance(content, str) else ""


#============================================
def build_rewrite_prompt(draft: HeuristicDraft, week: str) -> str:
	"""
	Render the rewrite prompt, capping the changelog to bound request size.
	"""
	template = prompt_loader.load_prompt("weekly_digest.txt")
	highlights_text = "\n".join(draft.highlights) or "(none)"
	changelog_text = draft.changelog[:MAX_CHANGELOG_PROMPT_CHARS]
	return prompt_loader.render_prompt(template, {
		"week": week,
		"highlights": highlights_text,
		"changelog": changelog_text,
	})


#============================================
def parse_rewrite_response(text: str) -> tuple[list[str], str]:
	"""
	Split a model reply into highlight bullets and changelog text.

	Highlights are the `- ` lines after ===HIGHLIGHTS=== and before
	===CHANGELOG===; the changelog is everything after ===CHANGELOG===.
	A missing marker yields an empty section.
	"""
	head = text or ""
	changelog_text = ""
	if CHANGELOG_MARKER in head:
		head, changelog_text = head.split(CHANGELOG_MARKER, 1)
	highlights_text = ""
	if HIGHLIGHTS_MARKER in head:
		highlights_text = head.split(HIGHLIGHTS_MARKER, 1)[1]
	highlights = []
	for line in highlights_text.splitlines():
		stripped = line.strip()
		if stripped.startswith("- "):
			highlights.append(stripped)
	return highlights, changelog_text.strip()


#============================================
def heuristic_result(draft: HeuristicDraft, outcome: RewriteOutcome, reason: str) -> RewriteResult:
	return RewriteResult(
		highlights=list(draft.highlights),
		changelog=draft.changelog,
		highlights_source=SOURCE_HEURISTIC,
		changelog_source=SOURCE_HEURISTIC,
		outcome=outcome,
		reason=reason,
	)


#============================================
def rewrite_digest(
	draft: HeuristicDraft,
	week: str,
	providers: tuple,
	ai_enabled: bool = True,
	log_fn=None,
	transport=None,
) -> RewriteResult:
	"""
	Try to replace the heuristic draft with a model rewrite.

	Each document keeps its own source: a part is marked ai-generated only
	when its text came from the model reply, so a reply with a valid
	changelog but no highlight bullets gives an ai-generated changelog and
	heuristic highlights (outcome PARTIAL).
	"""
	def warn(message: str) -> None:
		if log_fn is not None:
			log_fn(f"WARNING: {message}")

	if not ai_enabled:
		return heuristic_result(draft, RewriteOutcome.DISABLED, "rewrite disabled by --no-ai")
	if transport is None:
		if not providers:
			return heuristic_result(
				draft,
				RewriteOutcome.NO_CREDENTIAL,
				"no OPENAI_API_KEY or OPENROUTER_API_KEY set",
			)
		transport = ChatCompletionsTransport(providers[0])
	max_tokens = providers[0].max_tokens if providers else 1200
	prompt = build_rewrite_prompt(draft, week)
	try:
		reply = transport.generate(prompt, purpose=f"weekly digest {week}", max_tokens=max_tokens)
	except (requests.RequestException, TransportError) as error:
		warn(f"model rewrite failed, using heuristic draft: {error}")
		return heuristic_result(draft, RewriteOutcome.CALL_FAILED, str(error))
	if not (reply or "").strip():
		warn("model rewrite returned an empty response, using heuristic draft")
		return heuristic_result(draft, RewriteOutcome.EMPTY_RESPONSE, "empty response body")

	highlights, changelog = parse_rewrite_response(reply)
	if not highlights and not changelog:
		warn("model rewrite missing ===HIGHLIGHTS===/===CHANGELOG=== sections, using heuristic draft")
		return heuristic_result(draft, RewriteOutcome.MALFORMED_RESPONSE, "no usable sections")

	result = heuristic_result(draft, RewriteOutcome.ACCEPTED, "")
	if highlights:
		result.highlights = highlights
		result.highlights_source = SOURCE_AI
	else:
		warn("model rewrite had no highlight bullets, keeping heuristic highlights")
	if changelog:
		result.changelog = changelog
		result.changelog_source = SOURCE_AI
	else:
		warn("model rewrite had no changelog section, keeping heuristic changelog")
	if not (highlights and changelog):
		result.outcome = RewriteOutcome.PARTIAL
		result.reason = "highlights missing" if changelog else "changelog missing"
	return result
