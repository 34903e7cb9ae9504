"""
GitHub Data Service.

Collects the profile, repositories, recent commits, languages and public
events of one user into a `UserAggregate` for the roast prompt and stats.

Failure policy:
- Profile, repository list and events failures propagate, so a missing user
  answers 404 and GitHub throttling answers 429.
- Commits and languages of a single repository are skipped when they cannot
  be read.
"""

import asyncio
from collections import Counter
from typing import Any, Dict, List, Optional

from core.exceptions import GitHubAPIError, GitHubRateLimitError, GitHubUserNotFoundError
from core.logging_config import get_logger
from core.models import (
    CommitInfo,
    GitHubEvent,
    GitHubProfile,
    RepoCommits,
    Repository,
    UserAggregate,
)
from providers.github_provider import GitHubProvider

logger = get_logger(__name__)

REPO_LIMIT = 20
DETAILED_REPO_LIMIT = 5
COMMITS_PER_REPO = 10
EVENT_LIMIT = 20
QUICK_REPO_LIMIT = 10


class GitHubService:
    """
    Gathers everything the roast needs to know about a GitHub user.

    The profile lookup decides whether the user exists at all. Once it has
    succeeded, per-repository details are best effort: a repository whose
    commits or languages cannot be read is skipped rather than failing the
    whole roast.
    """

    def __init__(self, provider: GitHubProvider):
        self.provider = provider

    async def close(self) -> None:
        await self.provider.close()

    async def get_profile(self, username: str) -> GitHubProfile:
        """
        Fetch and normalize a user's profile.

        Raises:
            GitHubUserNotFoundError: GitHub answered 404.
            GitHubRateLimitError: GitHub is throttling us.
            GitHubAPIError: Any other upstream failure.
        """
        try:
            data = await self.provider.get_user_profile(username)
        except GitHubAPIError as e:
            if e.upstream_status == 404:
                raise GitHubUserNotFoundError(username) from e
            raise
        return GitHubProfile.from_api(data)

    async def get_repositories(
        self, username: str, sort: str = "updated", per_page: int = REPO_LIMIT
    ) -> List[Repository]:
        try:
            data = await self.provider.get_user_repos(username, sort, per_page)
        except GitHubAPIError as e:
            if e.upstream_status == 404:
                raise GitHubUserNotFoundError(username) from e
            raise
        return [Repository.from_api(repo) for repo in data or []]

    async def gather_user_data(self, username: str) -> UserAggregate:
        """Build the full aggregate used for a roast."""
        logger.info(f"Gathering GitHub data for {username}")

        profile = await self.get_profile(username)
        repositories = await self.get_repositories(username, per_page=REPO_LIMIT)

        commits: List[RepoCommits] = []
        language_stats: Counter = Counter()
        for repo in repositories[:DETAILED_REPO_LIMIT]:
            repo_commits = await self._safe_commits(username, repo.name)
            if repo_commits is not None:
                commits.append(repo_commits)
            languages = await self._safe_languages(username, repo.name)
            language_stats.update(languages)

        events = await self.get_events(username)

        aggregate = UserAggregate(
            profile=profile,
            repositories=tuple(repositories),
            commits=tuple(commits),
            events=tuple(events),
            language_stats=dict(language_stats),
        )
        logger.info(
            f"Gathered data for {username}",
            extra={
                "repositories": len(aggregate.repositories),
                "commits": aggregate.total_commits,
                "events": len(aggregate.events),
                "languages": len(aggregate.language_stats),
            },
        )
        return aggregate

    async def gather_quick_data(self, username: str) -> UserAggregate:
        """Profile and the most recent repositories only, fetched concurrently."""
        profile, repositories = await asyncio.gather(
            self.get_profile(username),
            self.get_repositories(username, per_page=QUICK_REPO_LIMIT),
        )
        return UserAggregate(profile=profile, repositories=tuple(repositories))

    async def _safe_commits(self, username: str, repo: str) -> Optional[RepoCommits]:
        try:
            data = await self.provider.get_repo_commits(
                username, repo, author=username, per_page=COMMITS_PER_REPO
            )
        except (GitHubAPIError, GitHubRateLimitError) as e:
            # Empty repositories answer 409; nothing to roast there
            logger.warning(f"Skipping commits for {username}/{repo}: {e.message}")
            return None
        return RepoCommits(
            repo=repo, commits=tuple(CommitInfo.from_api(c) for c in data or [])
        )

    async def _safe_languages(self, username: str, repo: str) -> Dict[str, int]:
        try:
            data = await self.provider.get_repo_languages(username, repo)
        except (GitHubAPIError, GitHubRateLimitError) as e:
            logger.warning(f"Skipping languages for {username}/{repo}: {e.message}")
            return {}
        return {lang: int(size) for lang, size in (data or {}).items()}

    async def get_events(self, username: str) -> List[GitHubEvent]:
        data = await self.provider.get_user_events(username, per_page=EVENT_LIMIT)
        return [GitHubEvent.from_api(event) for event in data or []]

    async def rate_limit_status(self) -> Dict[str, Any]:
        return await self.provider.get_rate_limit()
