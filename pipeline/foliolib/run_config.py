"""Run configuration assembled once per process.

Each job resolves its CLI flags, environment variables and settings.yaml
values into one frozen dataclass in main(). Everything below main() takes
that object as an argument instead of reading the environment.
"""

# Standard Library
import re
from dataclasses import dataclass
from dataclasses import field

# local repo modules
from foliolib import pipeline_settings
from foliolib.pipeline_settings import ConfigError


DEFAULT_CACHE_PATH = "src/data/github.cache.json"
DEFAULT_CONTENT_DIR = "src/content"
DEFAULT_LIMIT = 60
DEFAULT_MAX_HIGHLIGHTS = 5
DEFAULT_TIMEOUT_SECONDS = 30
WEEK_TAG_RE = re.compile(r"^\d{4}-\d{2}$")

# ordered by preference: the first provider with a key wins
LLM_PROVIDERS = (
	("openai", "OPENAI_API_KEY", "https://api.openai.com/v1", "gpt-4o-mini"),
	("openrouter", "OPENROUTER_API_KEY", "https://openrouter.ai/api/v1", "openai/gpt-4o-mini"),
)


#============================================
@dataclass(frozen=True)
class CollectorConfig:
	user: str
	limit: int
	token: str
	pinned_enabled: bool
	output_path: str
	dry_run: bool
	timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS

	@property
	def pinned_requested(self) -> bool:
		return self.pinned_enabled and bool(self.token)


#============================================
@dataclass(frozen=True)
class LLMProviderConfig:
	name: str
	api_key: str
	base_url: str
	model: str
	timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS
	max_tokens: int = 1200


#============================================
@dataclass(frozen=True)
class DigestConfig:
	week: str
	max_highlights: int
	dry_run: bool
	cache_path: str
	content_dir: str
	author: str
	providers: tuple = field(default_factory=tuple)
	ai_enabled: bool = True


#============================================
def _first_value(*values) -> str:
	"""
	Return the first non-empty stripped string.
	"""
	for value in values:
		text = (value or "").strip()
		if text:
			return text
	return ""


#============================================
def build_collector_config(args, environ: dict, settings: dict) -> CollectorConfig:
	"""
	Resolve Collector settings with CLI > env > settings.yaml precedence.
	"""
	user = _first_value(
		args.user,
		environ.get("GITHUB_USER"),
		pipeline_settings.get_setting_str(settings, ["github", "username"], ""),
	)
	if not user:
		raise ConfigError(
			"No GitHub username given. Pass --user <name> or set GITHUB_USER."
		)
	limit = args.limit
	if limit is None:
		limit = pipeline_settings.get_setting_int(settings, ["github", "limit"], DEFAULT_LIMIT)
	if limit < 1:
		raise ConfigError(f"--limit must be at least 1 (got {limit}).")
	token = _first_value(
		environ.get("GITHUB_TOKEN"),
		environ.get("GH_TOKEN"),
		pipeline_settings.get_setting_str(settings, ["github", "token"], ""),
	)
	pinned_text = environ.get("GITHUB_PINNED")
	if pinned_text is None:
		pinned_enabled = pipeline_settings.get_setting_bool(settings, ["github", "pinned"], False)
	else:
		pinned_enabled = pipeline_settings.parse_bool_text(pinned_text, "GITHUB_PINNED")
	config = CollectorConfig(
		user=user,
		limit=limit,
		token=token,
		pinned_enabled=pinned_enabled,
		output_path=args.output or DEFAULT_CACHE_PATH,
		dry_run=bool(args.dry_run),
		timeout_seconds=pipeline_settings.get_setting_int(
			settings, ["github", "timeout_seconds"], DEFAULT_TIMEOUT_SECONDS,
		),
	)
	return config


#============================================
def validate_week_tag(text: str) -> str:
	"""
	Accept only YYYY-WW week tags, verbatim.
	"""
	value = text or ""
	if not WEEK_TAG_RE.match(value):
		raise ConfigError(
			f"Invalid week tag {value!r}: expected YYYY-WW, for example 2025-34."
		)
	return value


#============================================
def build_llm_providers(environ: dict, settings: dict) -> tuple:
	"""
	List generative-text providers that have a credential, in preference order.
	"""
	model_override = _first_value(
		environ.get("DIGEST_MODEL"),
		pipeline_settings.get_setting_str(settings, ["llm", "model"], ""),
	)
	max_tokens = pipeline_settings.get_setting_int(settings, ["llm", "max_tokens"], 1200)
	timeout_seconds = pipeline_settings.get_setting_int(
		settings, ["llm", "timeout_seconds"], DEFAULT_TIMEOUT_SECONDS,
	)
	providers = []
	for name, key_env, base_url, default_model in LLM_PROVIDERS:
		api_key = _first_value(
			environ.get(key_env),
			pipeline_settings.get_setting_str(settings, ["llm", "providers", name, "api_key"], ""),
		)
		if not api_key:
			continue
		providers.append(LLMProviderConfig(
			name=name,
			api_key=api_key,
			base_url=pipeline_settings.get_setting_str(
				settings, ["llm", "providers", name, "base_url"], base_url,
			).rstrip("/"),
			model=model_override or default_model,
			timeout_seconds=timeout_seconds,
			max_tokens=max_tokens,
		))
	return tuple(providers)


#============================================
def build_digest_config(args, environ: dict, settings: dict, default_week: str) -> DigestConfig:
	"""
	Resolve Digest Builder settings with CLI > env > settings.yaml precedence.
	"""
	week = default_week if args.week is None else args.week
	week = validate_week_tag(week)
	max_highlights = args.max_highlights
	if max_highlights is None:
		max_highlights = pipeline_settings.get_setting_int(
			settings, ["digest", "max_highlights"], DEFAULT_MAX_HIGHLIGHTS,
		)
	if max_highlights < 1:
		raise ConfigError(f"--max-highlights must be at least 1 (got {max_highlights}).")
	author = _first_value(
		environ.get("DIGEST_AUTHOR"),
		pipeline_settings.get_setting_str(settings, ["digest", "author"], ""),
	)
	config = DigestConfig(
		week=week,
		max_highlights=max_highlights,
		dry_run=bool(args.dry_run),
		cache_path=args.cache or DEFAULT_CACHE_PATH,
		content_dir=args.out_dir or DEFAULT_CONTENT_DIR,
		author=author,
		providers=build_llm_providers(environ, settings),
		ai_enabled=not args.no_ai,
	)
	return config
