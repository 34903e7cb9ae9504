"""
Core data models for the Roast API

Defines the normalized GitHub records the roast is built from, the frozen
per-request aggregate, the generated roast, and the TTS request body.
"""

from typing import Any, Dict, List, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class GitHubProfile(BaseModel):
    """Public profile fields used by the prompt and the API responses."""

    model_config = ConfigDict(frozen=True)

    login: str
    name: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[str] = None
    company: Optional[str] = None
    blog: Optional[str] = None
    twitter_username: Optional[str] = None
    avatar_url: Optional[str] = None
    public_repos: int = 0
    followers: int = 0
    following: int = 0
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "GitHubProfile":
        fields = {k: data.get(k) for k in cls.model_fields if data.get(k) is not None}
        return cls(**fields)


class Repository(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    description: Optional[str] = None
    language: Optional[str] = None
    stars: int = 0
    forks: int = 0
    size: int = 0
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    topics: Tuple[str, ...] = ()
    html_url: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Repository":
        return cls(
            name=data["name"],
            description=data.get("description"),
            language=data.get("language"),
            stars=data.get("stargazers_count") or 0,
            forks=data.get("forks_count") or 0,
            size=data.get("size") or 0,
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
            topics=tuple(data.get("topics") or ()),
            html_url=data.get("html_url"),
        )


class CommitInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str = ""
    date: Optional[str] = None
    additions: int = 0
    deletions: int = 0

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "CommitInfo":
        commit = data.get("commit") or {}
        author = commit.get("author") or {}
        stats = data.get("stats") or {}
        return cls(
            message=commit.get("message") or "",
            date=author.get("date"),
            additions=stats.get("additions") or 0,
            deletions=stats.get("deletions") or 0,
        )


class RepoCommits(BaseModel):
    model_config = ConfigDict(frozen=True)

    repo: str
    commits: Tuple[CommitInfo, ...] = ()


class GitHubEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str
    repo: Optional[str] = None
    created_at: Optional[str] = None
    payload: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "GitHubEvent":
        return cls(
            type=data.get("type") or "UnknownEvent",
            repo=(data.get("repo") or {}).get("name"),
            created_at=data.get("created_at"),
            payload=data.get("payload") or {},
        )


class UserAggregate(BaseModel):
    """
    Everything gathered about one GitHub user for one roast request.

    Built once by the GitHub service and never modified afterwards.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    profile: GitHubProfile
    repositories: Tuple[Repository, ...] = ()
    commits: Tuple[RepoCommits, ...] = ()
    events: Tuple[GitHubEvent, ...] = ()
    language_stats: Dict[str, int] = Field(default_factory=dict, alias="languageStats")

    @property
    def total_commits(self) -> int:
        return sum(len(rc.commits) for rc in self.commits)

    @property
    def all_commits(self) -> List[CommitInfo]:
        return [commit for rc in self.commits for commit in rc.commits]


class GeneratedRoast(BaseModel):
    """One roast produced by the generation pipeline."""

    roast: str
    fallback: bool
    model: str
    language: str
    attempts: int = Field(ge=1)


class RoastStats(BaseModel):
    """Headline numbers shown next to a roast."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    total_repos: int
    total_stars: int
    total_commits: int
    top_language: Optional[str] = None
    account_age: int
    empty_repos: int


class VoiceSettings(BaseModel):
    """ElevenLabs voice tuning; values outside [0, 1] are rejected."""

    stability: float = Field(0.5, ge=0.0, le=1.0)
    similarity_boost: float = Field(0.8, ge=0.0, le=1.0)
    style: float = Field(0.0, ge=0.0, le=1.0)
    use_speaker_boost: bool = True


class TTSRequest(BaseModel):
    # Left loosely typed so a missing or non-string text is reported as a 400
    text: Optional[Any] = None
    voice_id: Optional[str] = None
    voice_settings: Optional[VoiceSettings] = None


class Voice(BaseModel):
    voice_id: str
    name: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None
    preview_url: Optional[str] = None
    available_for_tiers: Optional[List[str]] = None
    settings: Optional[Dict[str, Any]] = None
