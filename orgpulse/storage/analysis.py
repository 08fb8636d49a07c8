"""Organization-level statistics over stored repositories."""

from collections import Counter
from collections.abc import Sequence
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

UNKNOWN_LANGUAGE = "Unknown"


class RepositoryHighlight(BaseModel):
    """A repository singled out in an analysis."""

    name: str
    stars: int = 0
    forks: int = 0
    language: str = UNKNOWN_LANGUAGE


class AnalysisSummary(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_repos: int = Field(0, alias="totalRepos")
    total_stars: int = Field(0, alias="totalStars")
    total_forks: int = Field(0, alias="totalForks")
    avg_stars: int = Field(0, alias="avgStars", description="Rounded half up")
    avg_forks: int = Field(0, alias="avgForks", description="Rounded half up")


class TopRepositories(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    by_stars: RepositoryHighlight | None = Field(None, alias="byStars")
    by_forks: RepositoryHighlight | None = Field(None, alias="byForks")


class OrgAnalysis(BaseModel):
    """Totals, averages, language breakdown and top repositories of an org.

    Dumped with ``by_alias=True`` this is the JSON written by ``analyze``.
    """

    model_config = ConfigDict(populate_by_name=True)

    org: str
    summary: AnalysisSummary = Field(default_factory=AnalysisSummary)
    language_breakdown: dict[str, int] = Field(
        default_factory=dict, alias="languageBreakdown"
    )
    top_repos: TopRepositories = Field(default_factory=TopRepositories, alias="topRepos")


def highlight(repo: dict[str, Any]) -> RepositoryHighlight:
    return RepositoryHighlight(
        name=repo["name"],
        stars=repo.get("stars") or 0,
        forks=repo.get("forks") or 0,
        language=repo.get("language") or UNKNOWN_LANGUAGE,
    )


def _rounded_mean(total: int, count: int) -> int:
    return int(total / count + 0.5)


def analyze_repositories(org: str, repos: Sequence[dict[str, Any]]) -> OrgAnalysis:
    """Summarize stored repository documents of ``org``.

    Repositories without a primary language are counted as ``Unknown``.
    Ties for the top repositories go to the first repository in ``repos``.
    """
    if not repos:
        return OrgAnalysis(org=org)

    highlights = [highlight(repo) for repo in repos]
    total_stars = sum(h.stars for h in highlights)
    total_forks = sum(h.forks for h in highlights)
    languages = Counter(h.language for h in highlights)

    return OrgAnalysis(
        org=org,
        summary=AnalysisSummary(
            total_repos=len(highlights),
            total_stars=total_stars,
            total_forks=total_forks,
            avg_stars=_rounded_mean(total_stars, len(highlights)),
            avg_forks=_rounded_mean(total_forks, len(highlights)),
        ),
        language_breakdown=dict(
            sorted(languages.items(), key=lambda item: (-item[1], item[0]))
        ),
        top_repos=TopRepositories(
            by_stars=max(highlights, key=lambda h: h.stars),
            by_forks=max(highlights, key=lambda h: h.forks),
        ),
    )
