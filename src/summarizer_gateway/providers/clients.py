import asyncio
import logging
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI, OpenAIError
from pydantic import BaseModel, ValidationError, field_validator

from ..exceptions import ModelInvocationFailed

logger = logging.getLogger(__name__)


class ModelSummary(BaseModel):
    """Structured output expected from the language model."""

    summary: str
    cool_facts: List[str]

    @field_validator("cool_facts", mode="before")
    @classmethod
    def _wrap_single_fact(cls, v: Any) -> Any:
        if isinstance(v, str):
            return [v]
        return v


SUMMARY_RESPONSE_FORMAT: Dict[str, Any] = {
    "type": "json_schema",
    "json_schema": {
        "name": "repository_summary",
        "strict": True,
        "schema": {
            "type": "object",
            "properties": {
                "summary": {
                    "type": "string",
                    "description": "A concise summary of the GitHub repository",
                },
                "cool_facts": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Interesting facts about the repository",
                },
            },
            "required": ["summary", "cool_facts"],
            "additionalProperties": False,
        },
    },
}


class SummaryModelClient:
    """Calls an OpenAI-compatible chat model with a fixed output schema."""

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str,
        temperature: float = 0.7,
        timeout: float = 30.0,
    ):
        self.client = client
        self.model = model
        self.temperature = temperature
        self.timeout = timeout

    async def generate(self, system_prompt: str, user_prompt: str) -> ModelSummary:
        """Return the parsed summary or raise ``ModelInvocationFailed``."""
        try:
            response = await asyncio.wait_for(
                self.client.chat.completions.create(
                    model=self.model,
                    messages=[
                        {"role": "system", "content": system_prompt},
                        {"role": "user", "content": user_prompt},
                    ],
                    temperature=self.temperature,
                    response_format=SUMMARY_RESPONSE_FORMAT,
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise ModelInvocationFailed(
                f"Model call timed out after {self.timeout}s"
            ) from e
        except OpenAIError as e:
            raise ModelInvocationFailed(f"Model call failed: {e}") from e

        if not response.choices or not response.choices[0].message.content:
            raise ModelInvocationFailed("Model returned an empty response")

        content = response.choices[0].message.content
        try:
            return ModelSummary.model_validate_json(content)
        except ValidationError as e:
            raise ModelInvocationFailed(
                f"Model response did not match the schema: {e.error_count()} errors"
            ) from e

    async def close(self):
        await self.client.close()


def create_model_client(
    api_key: Optional[str],
    model: str,
    base_url: Optional[str] = None,
    temperature: float = 0.7,
    timeout: float = 30.0,
) -> Optional[SummaryModelClient]:
    """Build the model client, or None when no API key is configured."""
    if not api_key:
        logger.warning("⚠️ No language model API key configured; summaries will use the fallback")
        return None

    client = AsyncOpenAI(
        api_key=api_key,
        base_url=base_url,
        timeout=timeout,
        max_retries=2,
    )
    logger.info(f"✅ Language model client initialized ({model})")
    return SummaryModelClient(client, model, temperature=temperature, timeout=timeout)
