from __future__ import annotations

import asyncio
import logging
from typing import Any

from pydantic import BaseModel

from .config import EngineSettings, get_settings
from .errors import DescriptionError, DescriptionUnavailableError
from .series import Series, SeriesSummary, summarize

_LOGGER = logging.getLogger("gasmelody.describe")

FALLBACK_DESCRIPTION = (
    "A procedurally generated melody based on the heartbeat of the Arbitrum network. "
    "Captured in a moment of digital time."
)
ERROR_DESCRIPTION = "A unique audio-visual snapshot of the Arbitrum blockchain state."
EMPTY_DESCRIPTION = "Melody of the Machine."

SYSTEM_PROMPT = """\
You are a creative digital artist and blockchain philosopher.
Your task is to analyze a sequence of Arbitrum Gas Price data and generate a short,
poetic, and "cyberpunk" style description for an NFT that represents this musical moment.
Focus on the "mood" of the network (e.g., congested = frantic, low gas = zen/calm).
Keep the description under 50 words.
"""


class _CompletionRequest(BaseModel):
    model: str
    messages: list[dict[str, str]]
    temperature: float | None = None
    api_key: str | None = None


def build_prompt(summary: SeriesSummary) -> str:
    return (
        f"Analyze this Arbitrum gas data sequence (Last {summary.count} blocks):\n"
        f"Average Gas: {summary.avg_primary:.4f} Gwei\n"
        f"Peak Gas: {summary.max_primary:.4f} Gwei\n"
        f"Lowest Gas: {summary.min_primary:.4f} Gwei\n"
        "\n"
        'Generate a poetic, futuristic description for this "Gas Music" NFT.'
    )


async def generate_description(
    summary: SeriesSummary,
    *,
    settings: EngineSettings | None = None,
    api_key: str | None = None,
) -> str:
    """Ask the configured LiteLLM model for text; raises ``DescriptionError``."""

    settings = settings or get_settings()
    try:
        import litellm  # type: ignore[import]
    except ImportError as exc:
        raise DescriptionUnavailableError("litellm is not installed") from exc
    llm: Any = litellm

    if api_key is None:
        try:
            environment = llm.validate_environment(model=settings.description_model)
        except Exception as exc:
            raise DescriptionError(f"cannot check credentials: {exc}") from exc
        if not environment.get("keys_in_environment", False):
            missing = ", ".join(environment.get("missing_keys", [])) or "api key"
            raise DescriptionUnavailableError(
                f"no credentials for {settings.description_model}: {missing}"
            )

    request = _CompletionRequest(
        model=settings.description_model,
        messages=[
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": build_prompt(summary)},
        ],
        temperature=settings.description_temperature,
        api_key=api_key,
    ).model_dump(exclude_none=True)

    try:
        response: Any = await llm.acompletion(**request)
    except Exception as exc:  # provider, auth and quota errors alike
        raise DescriptionError(str(exc)) from exc

    try:
        content = response.choices[0].message.content
    except (AttributeError, IndexError) as exc:
        raise DescriptionError("LiteLLM response missing choices") from exc
    if not isinstance(content, str):
        return ""
    return content.strip()


async def describe(
    series: Series,
    *,
    settings: EngineSettings | None = None,
    api_key: str | None = None,
) -> str:
    """Free-text description of the series; never fails.

    Missing credentials, provider errors and empty replies each map to a
    fixed fallback string.
    """

    summary = summarize(series)
    try:
        text = await generate_description(summary, settings=settings, api_key=api_key)
    except DescriptionUnavailableError as exc:
        _LOGGER.warning("Description model unavailable; using fallback. (%s)", exc)
        return FALLBACK_DESCRIPTION
    except DescriptionError as exc:
        _LOGGER.warning("Description request failed: %s", exc, exc_info=True)
        return ERROR_DESCRIPTION
    return text or EMPTY_DESCRIPTION


def describe_sync(
    series: Series,
    *,
    settings: EngineSettings | None = None,
    api_key: str | None = None,
) -> str:
    return asyncio.run(describe(series, settings=settings, api_key=api_key))
