"""Request pipeline: admission → fetch → summarize → usage commit."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from ..exceptions import SummarizerGatewayError, UnexpectedFailure
from ..providers.github import GitHubClient, parse_github_url
from .admission import AdmissionGate, Admitted, CredentialContext, Rejected
from .summarizer import SummarizationEngine, SummaryOutcome
from .usage import commit_usage

logger = logging.getLogger(__name__)


class SummarizerPipeline:
    """Runs one summarization request end to end.

    Store calls are blocking SQLAlchemy calls and run in the threadpool. A
    request that fails after admission gets its quota unit back; one that
    produces a summary (model or fallback) keeps it.
    """

    def __init__(
        self,
        db: Session,
        gate: AdmissionGate,
        github: GitHubClient,
        engine: SummarizationEngine,
    ):
        self.db = db
        self.gate = gate
        self.github = github
        self.engine = engine

    async def run(
        self, credentials: CredentialContext, github_url: Optional[str]
    ) -> SummaryOutcome:
        decision = await run_in_threadpool(self.gate.admit, credentials)
        if isinstance(decision, Rejected):
            raise decision.error

        try:
            url = parse_github_url(github_url)
            logger.info(f"Fetching GitHub repo: {url.full_name}")
            snapshot = await self.github.fetch(url)
            outcome = await self.engine.summarize(snapshot.metadata, snapshot.readme)
        except SummarizerGatewayError:
            await self._release(decision)
            raise
        except Exception as e:
            logger.exception("Summarization request failed unexpectedly")
            await self._release(decision)
            raise UnexpectedFailure() from e
        except asyncio.CancelledError:
            logger.info(f"Request cancelled, releasing quota for {decision.log_ref}")
            # The release must finish even though this task is being cancelled
            await asyncio.shield(self._release(decision))
            raise

        if outcome.used_fallback:
            logger.warning(
                f"Using fallback summary for {snapshot.metadata.full_name}: {outcome.reason}"
            )

        await run_in_threadpool(
            commit_usage,
            self.db,
            decision,
            snapshot.metadata.full_name,
            outcome.used_fallback,
        )
        return outcome

    async def _release(self, admitted: Admitted) -> None:
        await run_in_threadpool(self.gate.release, admitted)
