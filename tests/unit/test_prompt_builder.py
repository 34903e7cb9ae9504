import pytest

from core.models import CommitInfo, GitHubProfile, RepoCommits, UserAggregate
from services.prompt_builder import (
    STAGE_DIRECTIONS,
    SYSTEM_PROMPT,
    build_prompt,
    language_name,
    recent_commit_messages,
    top_languages,
)


class TestHelpers:
    @pytest.mark.parametrize(
        "code,name", [("en", "English"), ("JA", "Japanese"), ("xx", "English"), ("", "English")]
    )
    def test_language_name(self, code, name):
        assert language_name(code) == name

    def test_top_languages(self):
        aggregate = UserAggregate(
            profile=GitHubProfile(login="octocat"),
            language_stats={"Go": 10, "Python": 300, "Rust": 50, "C": 1},
        )
        assert top_languages(aggregate) == ["Python", "Rust", "Go"]

    def test_recent_commit_messages_first_line(self):
        aggregate = UserAggregate(
            profile=GitHubProfile(login="octocat"),
            commits=(
                RepoCommits(
                    repo="r",
                    commits=(
                        CommitInfo(message="fix bug\n\nlong body"),
                        CommitInfo(message=""),
                    ),
                ),
            ),
        )
        assert recent_commit_messages(aggregate) == ["fix bug", "No message"]


class TestBuildPrompt:
    def test_contains_user_data(self, sample_aggregate):
        prompt = build_prompt(sample_aggregate, "es")

        assert "MUST be written in SPANISH" in prompt
        assert "Username: octocat" in prompt
        assert "Name: The Octocat" in prompt
        assert "Total Repositories: 3" in prompt
        assert "Total Stars: 14500" in prompt
        assert "Top Languages: HTML, CSS" in prompt
        assert "Hello-World, Spoon-Knife, empty-repo" in prompt

    def test_placeholders_for_missing_data(self):
        aggregate = UserAggregate(profile=GitHubProfile(login="newbie"))

        prompt = build_prompt(aggregate)

        assert "Anonymous Coder" in prompt
        assert "No bio - mysterious" in prompt
        assert "Star-to-Repo Ratio: 0/0 = 0.00" in prompt
        assert "HTML (probably)" in prompt
        assert "Recent Commit Messages: None available" in prompt

    def test_lists_every_stage_direction(self, sample_aggregate):
        prompt = build_prompt(sample_aggregate)
        for direction, _ in STAGE_DIRECTIONS:
            assert direction in prompt
            assert direction in SYSTEM_PROMPT
