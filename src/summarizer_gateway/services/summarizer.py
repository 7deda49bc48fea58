"""Summarization engine: model summary with a deterministic fallback."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Union

from ..providers.clients import SummaryModelClient
from ..providers.github import RepositoryMetadata

logger = logging.getLogger(__name__)

FALLBACK_WARNING = "AI generation failed, using fallback"
NO_DESCRIPTION = "No description available"

SYSTEM_PROMPT = (
    "You summarize GitHub repositories. Reply with a JSON object containing "
    "a concise 'summary' string and a 'cool_facts' list of 3 to 5 short, "
    "interesting facts about the repository."
)


@dataclass(frozen=True)
class SummaryResult:
    summary: str
    cool_facts: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class ModelSuccess:
    result: SummaryResult

    used_fallback = False
    warning: Optional[str] = None


@dataclass(frozen=True)
class ModelFallback:
    result: SummaryResult
    reason: str
    warning: str = FALLBACK_WARNING

    used_fallback = True


SummaryOutcome = Union[ModelSuccess, ModelFallback]


def build_prompt(metadata: RepositoryMetadata, readme: str) -> str:
    return (
        "Summarize this github repository from this readme file content.\n\n"
        f"Repository Name: {metadata.full_name}\n"
        f"Repository Description: {metadata.description or NO_DESCRIPTION}\n\n"
        f"README Content:\n{readme}"
    )


def build_fallback(metadata: RepositoryMetadata) -> SummaryResult:
    """Summary and facts derived from repository metadata alone."""
    description = metadata.description
    focus = f" focused on {description.lower()}" if description else ""
    summary = (
        f"{metadata.full_name} is a {metadata.language or 'software'} project{focus}. "
        f"It aims to {description or 'provide solutions'} by leveraging modern technology."
    )

    facts = []
    if description:
        facts.append(description)
    if metadata.topics:
        facts.append(f"Uses {', '.join(metadata.topics[:3])} technologies")
    if metadata.stargazers_count > 100:
        facts.append(f"{metadata.stargazers_count} stars on GitHub")

    return SummaryResult(summary=summary, cool_facts=facts)


class SummarizationEngine:
    """Always yields a summary: the model's when it can, the fallback otherwise."""

    def __init__(self, model_client: Optional[SummaryModelClient]):
        self.model_client = model_client

    async def summarize(self, metadata: RepositoryMetadata, readme: str) -> SummaryOutcome:
        if self.model_client is None:
            return self._fallback(metadata, "no language model configured")

        try:
            output = await self.model_client.generate(
                SYSTEM_PROMPT, build_prompt(metadata, readme)
            )
        except Exception as e:
            logger.error(f"AI generation error for {metadata.full_name}: {e}")
            return self._fallback(metadata, str(e))

        logger.info(f"AI summary generated for {metadata.full_name}")
        return ModelSuccess(
            SummaryResult(summary=output.summary, cool_facts=list(output.cool_facts))
        )

    def _fallback(self, metadata: RepositoryMetadata, reason: str) -> ModelFallback:
        return ModelFallback(result=build_fallback(metadata), reason=reason)
