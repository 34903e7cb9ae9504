"""
Roast prompt construction.

Turns a `UserAggregate` into the user message sent to the chat model. The
prompt pins down three things the rest of the system relies on: the output
language, the length, and the `*...*` stage-direction vocabulary that the
stage client turns into sound effects.
"""

from typing import Dict, List

from core.models import UserAggregate

LANGUAGE_NAMES: Dict[str, str] = {
    "en": "English",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
    "hi": "Hindi",
    "zh": "Chinese",
    "ja": "Japanese",
    "ru": "Russian",
}

STAGE_DIRECTIONS = (
    ("*adjusts mic*", "opening"),
    ("*crowd laughs*", "after jokes"),
    ("*crowd gasps*", "shocking stats"),
    ("*applause*", "rare compliments"),
    ("*crickets*", "awkward moments"),
    ("*crowd boos*", "harsh truths"),
    ("*rimshot*", "punchlines"),
    ("*air horn*", "dramatic moments"),
    ("*drops mic*", "ending"),
)

SYSTEM_PROMPT = (
    "You are a professional stand-up comedian and roast show host. Your job is "
    "to write DETAILED, HILARIOUS roast scripts.\n\n"
    "CRITICAL REQUIREMENTS:\n"
    "- Write AT LEAST 300-500 words per roast\n"
    "- Include multiple jokes about different aspects of their GitHub\n"
    "- Use specific stage directions: "
    + ", ".join(direction for direction, _ in STAGE_DIRECTIONS)
    + "\n- Be witty and clever, not just mean\n"
    "- Cover their bio, repos, commits, languages, stats in detail\n"
    "- Make it feel like a real comedy roast show\n\n"
    "DO NOT write short, generic responses. This should be a FULL professional "
    "roast performance."
)

TOPICS = (
    "Opening: introduce them with their username and a witty observation",
    "Bio analysis: roast their bio (or lack of one)",
    "Repository stats: mock their repo count vs star ratio",
    "Commit messages: make fun of generic commit messages",
    "Language choices: comment on their programming languages",
    "GitHub activity: follower count, contribution patterns",
    "Repo names: make jokes about their repository names",
    "Closing: end with a backhanded compliment",
)


def language_name(code: str) -> str:
    return LANGUAGE_NAMES.get((code or "").lower(), "English")


def top_languages(aggregate: UserAggregate, limit: int = 3) -> List[str]:
    ranked = sorted(aggregate.language_stats.items(), key=lambda kv: kv[1], reverse=True)
    return [lang for lang, _ in ranked[:limit]]


def recent_commit_messages(aggregate: UserAggregate, limit: int = 5) -> List[str]:
    messages = []
    for commit in aggregate.all_commits[:limit]:
        first_line = commit.message.split("\n", 1)[0].strip()
        messages.append(first_line or "No message")
    return messages


def _example_roast(login: str, total_repos: int, total_stars: int) -> str:
    return (
        f'"*adjusts mic* Ladies and gentlemen, presenting {login}! *applause* Now '
        "here's a developer whose GitHub profile reads like a cry for help written "
        "in JavaScript. *crowd laughs* With "
        f"{total_repos} repositories and only {total_stars} stars total, their code "
        "has less popularity than a debugging session at 3 AM. *crowd gasps* Let's "
        "talk about those commit messages! *air horn* 'Add files via upload', "
        "'first commit', 'fix' - it's like watching someone communicate entirely "
        "through grunts and pointing. *rimshot* But seriously folks, "
        f"{login} is out here coding and sharing their work, and that takes real "
        'courage. *applause* *drops mic*"'
    )


def build_prompt(aggregate: UserAggregate, language: str = "en") -> str:
    """
    Build the roast prompt for a user.

    Never fails: every missing field is replaced by a placeholder joke so the
    model always has something to work with.
    """
    profile = aggregate.profile
    target = language_name(language)

    total_repos = len(aggregate.repositories)
    total_stars = sum(repo.stars for repo in aggregate.repositories)
    ratio = total_stars / total_repos if total_repos else 0.0
    languages = top_languages(aggregate)
    commits = recent_commit_messages(aggregate)
    repo_names = [repo.name for repo in aggregate.repositories[:10]]

    directions = "\n".join(f"- {d} ({when})" for d, when in STAGE_DIRECTIONS)
    topics = "\n".join(f"{i}. {topic}" for i, topic in enumerate(TOPICS, start=1))
    commit_line = (
        ", ".join(f'"{message}"' for message in commits) if commits else "None available"
    )

    return f"""You are a world-class roast show host writing a script for a comedy roast. Write a DETAILED, humorous, satirical roast of the GitHub developer described below.

CRITICAL REQUIREMENTS
1. LENGTH: Write AT LEAST 300-500 words. This should be a FULL roast, not a short comment.
2. LANGUAGE: The entire roast script MUST be written in {target.upper()}.
3. TONE: Professional comedian style - witty, clever, satirical but not mean-spirited.
4. STRUCTURE: Multiple paragraphs covering different aspects of their GitHub profile.

STAGE DIRECTIONS FOR SOUND EFFECTS
Include these EXACT stage directions, in English and wrapped in asterisks, throughout your roast:
{directions}

ROASTING TOPICS TO COVER
{topics}

EXAMPLE QUALITY ROAST:
{_example_roast(profile.login, total_repos, total_stars)}

---
DEVELOPER DATA TO ROAST:
- Username: {profile.login}
- Name: {profile.name or "Anonymous Coder"}
- Bio: "{profile.bio or "No bio - mysterious like their debugging skills"}"
- Location: {profile.location or "Somewhere with Wi-Fi, presumably"}
- Total Repositories: {total_repos}
- Total Stars: {total_stars}
- Star-to-Repo Ratio: {total_stars}/{total_repos} = {ratio:.2f}
- Top Languages: {", ".join(languages) or "HTML (probably)"}
- Repository Names: {", ".join(repo_names) or "None available"}
- Recent Commit Messages: {commit_line}
- Followers: {profile.followers}
- Following: {profile.following}
---

Write your roast script now!"""
