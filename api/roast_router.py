"""
Roast Router.

Endpoints Provided:
- `GET /api/roast/demo/sample`: One of a few canned roasts; no upstream calls.
- `GET /api/roast/{username}`: Full roast. Gathers the user's profile,
  repositories, commits, events and languages, then generates 1 to 3 roast
  variants in the requested language along with headline statistics.
- `GET /api/roast/{username}/quick`: Cheaper roast built from the profile and
  the ten most recently updated repositories only.

Unknown users answer 404 and GitHub throttling answers 429. Any other failure
answers 500. LLM failures are not errors here: they yield a fallback roast.
"""

import random
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query

from api.dependencies import get_github_service, get_roast_service
from core.exceptions import (
    GitHubRateLimitError,
    GitHubUserNotFoundError,
    RoastGenerationError,
    ValidationError,
)
from core.logging_config import get_logger, log_function_call
from core.validation import InputValidator
from services.github_service import GitHubService
from services.roast_service import RoastService
from services.stats import compute_roast_stats

logger = get_logger(__name__)

roast_router = APIRouter(prefix="/api/roast", tags=["Roast"])

SAMPLE_ROASTS = (
    "Looking at your GitHub, I see you're the kind of developer who commits 'fix typo' "
    "more often than actual features. Your repository names suggest you either have a "
    "naming convention phobia or you're trying to speak in code... literally. But hey, "
    "at least you're consistent in your inconsistency! 🚀",
    "Your commit history reads like a mystery novel where the plot never develops. "
    "'Update README', 'Fix bug', 'Change stuff' - Shakespeare would weep. Your repos "
    "have more forks than a fancy restaurant, but fewer stars than a cloudy night. Keep "
    "coding though, someone has to keep the 'TODO' comments industry alive! 💻",
    "I see you've mastered the art of the empty repository. It's like modern art - we "
    "don't understand it, but we respect the boldness. Your bio says 'passionate "
    "developer' but your commit frequency suggests 'passionate about weekends'. Still, "
    "your GitHub green squares look like a beautiful archipelago of productivity "
    "islands! 🌟",
)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# Registered before /{username} so "demo" is never taken for a username
@roast_router.get("/demo/sample")
async def sample_roast() -> Dict[str, Any]:
    return {
        "success": True,
        "demo": True,
        "roast": random.choice(SAMPLE_ROASTS),
        "message": "This is a sample roast. Provide a real GitHub username to get a personalized roast!",
    }


@roast_router.get("/{username}")
@log_function_call(logger)
async def roast_user(
    username: str,
    variants: Optional[str] = Query(None),
    language: Optional[str] = Query(None),
    github_service: GitHubService = Depends(get_github_service),
    roast_service: RoastService = Depends(get_roast_service),
) -> Dict[str, Any]:
    """
    Generate a roast for a GitHub user.

    Args:
        username: GitHub login.
        variants: Number of roasts to generate, clamped to 1..3.
        language: Roast language; unsupported codes fall back to "en".
    """
    InputValidator.validate_username(username)
    variant_count = InputValidator.clamp_variants(variants)
    target_language = InputValidator.normalize_language(language)

    logger.info(
        f"Roast requested for {username}",
        extra={"variants": variant_count, "language": target_language},
    )

    try:
        aggregate = await github_service.gather_user_data(username)
        roasts = await roast_service.generate_multiple_roasts(
            aggregate, variant_count, target_language
        )
    except (GitHubUserNotFoundError, GitHubRateLimitError, ValidationError):
        raise
    except Exception as e:
        logger.error(f"Error generating roast for {username}: {e}", exc_info=True)
        raise RoastGenerationError(str(e)) from e

    stats = compute_roast_stats(aggregate)
    profile = aggregate.profile

    return {
        "success": True,
        "username": username,
        "language": target_language,
        "roasts": [roast.model_dump() for roast in roasts],
        "stats": stats.model_dump(by_alias=True),
        "profile": {
            "name": profile.name,
            "bio": profile.bio,
            "location": profile.location,
            "company": profile.company,
            "followers": profile.followers,
            "following": profile.following,
        },
        "meta": {
            "generated_at": _now(),
            "variants_requested": variant_count,
            "variants_generated": len(roasts),
            "data_points_analyzed": {
                "repositories": len(aggregate.repositories),
                "commits": aggregate.total_commits,
                "events": len(aggregate.events),
                "languages": len(aggregate.language_stats),
            },
        },
    }


@roast_router.get("/{username}/quick")
@log_function_call(logger)
async def quick_roast(
    username: str,
    language: Optional[str] = Query(None),
    github_service: GitHubService = Depends(get_github_service),
    roast_service: RoastService = Depends(get_roast_service),
) -> Dict[str, Any]:
    """Roast built from the profile and recent repositories only"""
    InputValidator.validate_username(username)
    target_language = InputValidator.normalize_language(language)
    logger.info(f"Quick roast requested for {username}")

    try:
        aggregate = await github_service.gather_quick_data(username)
        roast = await roast_service.generate_roast(aggregate, target_language)
    except (GitHubUserNotFoundError, GitHubRateLimitError, ValidationError):
        raise
    except Exception as e:
        logger.error(f"Error generating quick roast for {username}: {e}", exc_info=True)
        raise RoastGenerationError(str(e)) from e

    return {
        "success": True,
        "username": username,
        "roast": roast.roast,
        "fallback": roast.fallback,
        "quick": True,
        "meta": {"generated_at": _now(), "mode": "quick"},
    }
