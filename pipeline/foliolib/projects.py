"""Project catalogue loading, ordering and filtering for the portfolio pages."""

# Standard Library
import json
from dataclasses import dataclass
from dataclasses import field

# local repo modules
from foliolib import activity_window


DEFAULT_PROJECTS_PATH = "src/data/projects.custom.json"


#============================================
@dataclass
class Project:
	slug: str
	name: str
	description: str = ""
	tags: list[str] = field(default_factory=list)
	repo: str | None = None
	homepage: str | None = None
	featured: bool = False
	cover: str | None = None
	updated_at: str | None = None

	@classmethod
	def from_dict(cls, data: dict) -> "Project":
		return cls(
			slug=data.get("slug") or "",
			name=data.get("name") or "",
			description=data.get("description") or "",
			tags=[str(tag).lower() for tag in (data.get("tags") or [])],
			repo=data.get("repo"),
			homepage=data.get("homepage"),
			featured=bool(data.get("featured")),
			cover=data.get("cover"),
			updated_at=data.get("updatedAt"),
		)


#============================================
def _updated_epoch(project: Project) -> float:
	moment = activity_window.parse_iso(project.updated_at)
	if moment is None:
		return 0.0
	return moment.timestamp()


#============================================
def sort_projects(projects: list[Project]) -> list[Project]:
	"""
	Featured first, then most recently updated, then name.
	"""
	return sorted(
		projects,
		key=lambda project: (
			not project.featured,
			-_updated_epoch(project),
			project.name.lower(),
		),
	)


#============================================
def load_projects(path: str = DEFAULT_PROJECTS_PATH) -> list[Project]:
	"""
	Read the project catalogue JSON list and return it sorted.
	"""
	with open(path, "r", encoding="utf-8") as handle:
		data = json.load(handle)
	if not isinstance(data, list):
		raise RuntimeError(f"Project catalogue must be a JSON list: {path}")
	projects = [Project.from_dict(item) for item in data if isinstance(item, dict)]
	return sort_projects(projects)


#============================================
def get_all_tags(projects: list[Project]) -> list[str]:
	tags = set()
	for project in projects:
		tags.update(project.tags)
	return sorted(tags)


#============================================
def filter_projects(projects: list[Project], query: str = "", tags: list[str] | None = None) -> list[Project]:
	"""
	Keep projects matching the text query and carrying every requested tag.
	"""
	needle = (query or "").strip().lower()
	wanted = [tag.lower() for tag in (tags or [])]
	matches = []
	for project in projects:
		text_match = (
			not needle
			or needle in project.name.lower()
			or needle in project.description.lower()
			or needle in project.slug.lower()
		)
		tag_match = all(tag in project.tags for tag in wanted)
		if text_match and tag_match:
			matches.append(project)
	return matches
