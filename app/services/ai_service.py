"""
Claude integration for food analysis.

Three capabilities:
1. General (user-independent) food info, stored in the smart cache
2. RAG medical analysis of one food against a user's medicines and diseases
3. Food image classification for the quick-score path

JSON extraction and retry are kept as plain functions so they can be tested
without the network.
"""

import asyncio
import base64
import json
import logging
import random
import re
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

import anthropic
import httpx
from anthropic import AsyncAnthropic

from app.config import settings
from app.services.ai_schemas import (
    FoodImageClassificationSchema,
    GeneralFoodInfoSchema,
    MedicalAnalysisOutput,
)
from app.services.data_schemas import NutritionFacts
from app.services.prompts import FOOD_IMAGE_CLASSIFICATION_PROMPT, build_general_food_info_prompt

logger = logging.getLogger(__name__)


# =============================================================================
# JSON EXTRACTION
# =============================================================================


def _strip_markdown_json(text: str) -> str:
    """Strip markdown code block wrappers from JSON text."""
    if "```json" in text:
        text = text.split("```json")[1].split("```")[0].strip()
    elif "```" in text:
        text = text.split("```")[1].split("```")[0].strip()
    return text


def _fix_trailing_commas(text: str) -> str:
    """Fix trailing commas in JSON (common LLM error)."""
    text = re.sub(r",\s*}", "}", text)
    text = re.sub(r",\s*]", "]", text)
    return text


def _first_balanced_object(text: str) -> Optional[str]:
    """Return the first {...} span with balanced braces, ignoring braces inside strings."""
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start : index + 1]
    return None


def extract_json_object(text: str) -> dict:
    """
    Parse the first JSON object in an LLM response.

    Markdown fences are stripped first; any prose around the object is
    ignored.

    Raises:
        JSONExtractionError: If no parseable JSON object is found
    """
    if not text or not text.strip():
        raise JSONExtractionError("Empty AI response")

    candidate = _first_balanced_object(_strip_markdown_json(text))
    if candidate is None:
        # Fences may have cut the object; retry on the raw text
        candidate = _first_balanced_object(text)
    if candidate is None:
        raise JSONExtractionError("No JSON object found in AI response")

    try:
        parsed = json.loads(_fix_trailing_commas(candidate))
    except json.JSONDecodeError as e:
        raise JSONExtractionError(f"Invalid JSON in AI response: {e}") from e

    if not isinstance(parsed, dict):
        raise JSONExtractionError("AI response JSON is not an object")
    return parsed


# =============================================================================
# RETRY POLICY
# =============================================================================


@dataclass(frozen=True)
class RetryPolicy:
    """
    Exponential backoff for one call site.

    Attempt n (0-based) waits base_delay * multiplier**n, with +-10% jitter,
    before the next try. max_attempts=1 means no retry.
    """

    max_attempts: int = 1
    base_delay: float = 1.0
    multiplier: float = 2.0
    jitter: float = 0.1
    retry_on: tuple = (ValueError,)

    def delay_for(self, attempt: int) -> float:
        delay = self.base_delay * (self.multiplier**attempt)
        return delay + delay * self.jitter * (2 * random.random() - 1)

    @classmethod
    def for_images(cls) -> "RetryPolicy":
        return cls(
            max_attempts=settings.image_retry_max_attempts,
            base_delay=settings.image_retry_base_delay,
            multiplier=settings.image_retry_multiplier,
            retry_on=(ServiceUnavailableError, RateLimitError, ValueError),
        )

    @classmethod
    def for_text(cls) -> "RetryPolicy":
        return cls(
            max_attempts=settings.text_retry_max_attempts,
            retry_on=(ServiceUnavailableError, RateLimitError),
        )


async def call_with_retry(
    func: Callable[..., Awaitable[Any]],
    policy: RetryPolicy,
    *args,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    **kwargs,
) -> Any:
    """Run func under policy; the last exception is re-raised once attempts run out."""
    attempts = max(1, policy.max_attempts)
    for attempt in range(attempts):
        try:
            return await func(*args, **kwargs)
        except policy.retry_on as e:
            if attempt >= attempts - 1:
                if attempts > 1:
                    logger.error("All %d attempts failed: %s", attempts, e)
                raise
            sleep_time = policy.delay_for(attempt)
            logger.warning(
                "Attempt %d/%d failed (%s), retrying in %.1fs...",
                attempt + 1,
                attempts,
                e,
                sleep_time,
            )
            await sleep(sleep_time)


# =============================================================================
# CLAUDE SERVICE
# =============================================================================


class ClaudeService:
    """Claude API access for every LLM feature."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        client: Optional[Any] = None,
        image_retry: Optional[RetryPolicy] = None,
        text_retry: Optional[RetryPolicy] = None,
    ):
        if client is None:
            key = settings.anthropic_api_key if api_key is None else api_key
            if not key:
                raise ConfigurationError("ANTHROPIC_API_KEY is not configured")
            timeout = httpx.Timeout(timeout=settings.llm_timeout, connect=settings.llm_connect_timeout)
            client = AsyncAnthropic(api_key=key, timeout=timeout)

        self.client = client
        self.text_model = settings.text_model
        self.vision_model = settings.vision_model
        self.image_retry = image_retry or RetryPolicy.for_images()
        self.text_retry = text_retry or RetryPolicy.for_text()

    async def _create(self, **params):
        try:
            return await self.client.messages.create(**params)
        except anthropic.APIConnectionError as e:
            raise ServiceUnavailableError("AI service temporarily unavailable") from e
        except anthropic.RateLimitError as e:
            raise RateLimitError("Too many requests, please try again in 1 minute") from e
        except anthropic.APIStatusError as e:
            if e.status_code >= 500:
                raise ServiceUnavailableError("AI service error") from e
            raise ValueError(f"Request error: {e.message}") from e

    async def generate(
        self,
        prompt: str,
        model: Optional[str] = None,
        max_tokens: int = 4096,
        images: Optional[list[dict]] = None,
    ) -> str:
        """
        Send one user prompt (optionally with image blocks) and return the text.

        Raises:
            ServiceUnavailableError / RateLimitError: Upstream failures
            ValueError: Empty response or rejected request
        """
        content: Any = prompt
        if images:
            content = [*images, {"type": "text", "text": prompt}]

        response = await self._create(
            model=model or self.text_model,
            max_tokens=max_tokens,
            messages=[{"role": "user", "content": content}],
        )

        response_text = ""
        for block in response.content:
            if hasattr(block, "text"):
                response_text += block.text

        if not response_text.strip():
            raise ValueError("No text content in AI response")
        return response_text

    # =========================================================================
    # GENERAL FOOD INFO
    # =========================================================================

    async def generate_general_food_info(
        self, food_name: str, nutrition: Optional[NutritionFacts] = None
    ) -> GeneralFoodInfoSchema:
        """
        Benefits, harms, cooking tips and a one-line summary for a healthy adult.

        Raises on any failure; the caller decides on a fallback.
        """
        text = await self.generate(build_general_food_info_prompt(food_name, nutrition), max_tokens=1024)
        return GeneralFoodInfoSchema.model_validate(extract_json_object(text))

    # =========================================================================
    # MEDICAL ANALYSIS
    # =========================================================================

    async def _medical_analysis_once(self, prompt: str, food_name: str) -> MedicalAnalysisOutput:
        text = await self.generate(prompt)
        parsed = extract_json_object(text)
        if not parsed.get("food_name"):
            parsed["food_name"] = food_name
        return MedicalAnalysisOutput.model_validate(parsed)

    async def generate_medical_analysis(self, prompt: str, food_name: str) -> MedicalAnalysisOutput:
        """
        Run the RAG prompt and parse the result.

        A missing final_score is filled from the assessment level.

        Raises:
            JSONExtractionError: No JSON object in the response
            ValidationError: JSON does not match MedicalAnalysisOutput
        """
        analysis = await call_with_retry(self._medical_analysis_once, self.text_retry, prompt, food_name)
        if analysis.final_score is None:
            logger.info(
                "No final_score in analysis for %s; using level %s",
                food_name,
                analysis.interaction_assessment.level,
            )
        return analysis.with_score_filled()

    # =========================================================================
    # FOOD IMAGE CLASSIFICATION
    # =========================================================================

    async def _classify_image_once(self, image_data: bytes, media_type: str) -> FoodImageClassificationSchema:
        image_block = {
            "type": "image",
            "source": {
                "type": "base64",
                "media_type": media_type,
                "data": base64.standard_b64encode(image_data).decode("utf-8"),
            },
        }
        text = await self.generate(
            FOOD_IMAGE_CLASSIFICATION_PROMPT,
            model=self.vision_model,
            max_tokens=512,
            images=[image_block],
        )
        return FoodImageClassificationSchema.model_validate(extract_json_object(text))

    async def classify_food_image(self, image_data: bytes, media_type: str = "image/jpeg") -> FoodImageClassificationSchema:
        """
        Identify what the image shows, retrying under the image policy.

        Raises the last error once retries are exhausted.
        """
        return await call_with_retry(self._classify_image_once, self.image_retry, image_data, media_type)


# =============================================================================
# CUSTOM EXCEPTIONS
# =============================================================================


class ServiceUnavailableError(Exception):
    """AI service is temporarily unavailable."""

    pass


class RateLimitError(Exception):
    """Rate limit exceeded."""

    pass


class ConfigurationError(Exception):
    """Required configuration (API key) is missing."""

    pass


class JSONExtractionError(ValueError):
    """No JSON object could be parsed from an AI response."""

    pass
