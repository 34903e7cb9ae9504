"""
User Data Router.

Read-only views of the GitHub data the roast is built from.

Endpoints Provided:
- `GET /api/user/{username}`: Normalized public profile.
- `GET /api/user/{username}/repos`: Repositories, with `sort` and `per_page`
  (capped at 100) passed through to GitHub.
- `GET /api/user/{username}/analyze`: The full aggregate used for a roast,
  plus commit-message analysis and account age.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query

from api.dependencies import get_github_service
from core.logging_config import get_logger, log_function_call
from core.validation import InputValidator
from services.github_service import GitHubService
from services.stats import analyze_commit_patterns, calculate_account_age

logger = get_logger(__name__)

user_router = APIRouter(prefix="/api/user", tags=["User"])

REPO_SORTS = ("created", "updated", "pushed", "full_name")


@user_router.get("/{username}")
async def get_user_profile(
    username: str, github_service: GitHubService = Depends(get_github_service)
) -> Dict[str, Any]:
    InputValidator.validate_username(username)
    logger.info(f"Fetching profile for {username}")

    profile = await github_service.get_profile(username)
    return {"success": True, "data": profile.model_dump()}


@user_router.get("/{username}/repos")
async def get_user_repos(
    username: str,
    sort: str = Query("updated"),
    per_page: Optional[str] = Query(None),
    github_service: GitHubService = Depends(get_github_service),
) -> Dict[str, Any]:
    InputValidator.validate_username(username)
    sort = sort if sort in REPO_SORTS else "updated"
    page_size = InputValidator.clamp_per_page(per_page)
    logger.info(f"Fetching repositories for {username}")

    repos = await github_service.get_repositories(username, sort, page_size)
    return {
        "success": True,
        "data": [repo.model_dump() for repo in repos],
        "meta": {"count": len(repos), "sort": sort, "per_page": page_size},
    }


@user_router.get("/{username}/analyze")
@log_function_call(logger)
async def analyze_user(
    username: str, github_service: GitHubService = Depends(get_github_service)
) -> Dict[str, Any]:
    InputValidator.validate_username(username)
    logger.info(f"Analyzing user {username}")

    aggregate = await github_service.gather_user_data(username)
    return {
        "success": True,
        "data": aggregate.model_dump(by_alias=True),
        "meta": {
            "analyzed_at": datetime.now(timezone.utc).isoformat(),
            "repos_analyzed": len(aggregate.repositories),
            "commits_analyzed": aggregate.total_commits,
            "account_age": calculate_account_age(aggregate.profile.created_at),
            "commit_patterns": analyze_commit_patterns(aggregate.all_commits),
        },
    }
