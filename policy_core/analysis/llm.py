import asyncio
import functools
import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Optional

import openai
from google import genai

from policy_core.config import get_api_keys, load_config
from policy_core.exceptions import APIKeyMissingError, LLMResponseError

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


# =============================================================================
# GEMINI RESPONSE PARSING
# =============================================================================
# Thinking models return multi-part responses: thought parts (reasoning traces)
# plus the text part holding the JSON. The SDK's response.text concatenates
# every text part, which breaks json.loads with "Extra data", and returns None
# when only thought parts exist. Take the first non-thought text part instead.
# =============================================================================

def extract_json_from_gemini_response(response: Any) -> str:
    """
    Extract the JSON string from a Gemini response, skipping thought parts.

    Args:
        response: Gemini API response object with candidates[0].content.parts

    Returns:
        str: Text of the first non-thought, non-empty part

    Raises:
        ValueError: If response has no candidates, no parts, or no text parts
    """
    if not response.candidates:
        raise ValueError("Gemini response has no candidates")
    content = response.candidates[0].content
    if not content:
        raise ValueError("Gemini response candidate has no content")
    if not content.parts:
        raise ValueError("Gemini response content has no parts")

    for part in content.parts:
        # thought can be True or None, not always False
        if getattr(part, "thought", False) is True:
            continue
        if part.text and part.text.strip():
            return part.text

    raise ValueError(
        "No text part found in Gemini response. "
        "Response may contain only thought parts or be empty."
    )


def parse_json_text(text: Optional[str]) -> dict[str, Any]:
    """
    Parse model output as a JSON object, tolerating ```json fences and
    leading or trailing prose around a single object.

    Raises:
        LLMResponseError: No JSON object could be recovered
    """
    if not text or not text.strip():
        raise LLMResponseError("Model returned an empty response")

    cleaned = _FENCE_RE.sub("", text.strip())
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError:
        start, end = cleaned.find("{"), cleaned.rfind("}")
        if start == -1 or end <= start:
            raise LLMResponseError(f"Model response is not JSON: {cleaned[:120]!r}")
        try:
            parsed = json.loads(cleaned[start:end + 1])
        except json.JSONDecodeError as e:
            raise LLMResponseError(f"Model response is not valid JSON: {e}") from e

    if not isinstance(parsed, dict):
        raise LLMResponseError(f"Expected a JSON object, got {type(parsed).__name__}")
    return parsed


class GenerativeClient(ABC):
    """Structured-output text generation used by the answer grounder and guardrail."""

    model_name: str = ""

    @abstractmethod
    async def generate_json(self, prompt: str, schema: Optional[dict] = None) -> dict[str, Any]:
        """
        Returns:
            Parsed JSON object

        Raises:
            LLMResponseError: Output could not be parsed
        """
        pass


class GeminiClient(GenerativeClient):
    """
    Gemini through google-genai, either with an API key or on Vertex AI.

    The SDK call is synchronous; it runs in a worker thread so the event loop
    keeps serving other requests.
    """

    def __init__(
        self,
        client: Any,
        model_id: str = "gemini-1.5-flash",
        temperature: float = 0.2,
        max_output_tokens: int = 2048,
        max_retries: int = 2,
        base_delay: float = 1.0,
    ):
        self.client = client
        self.model_name = model_id
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self.max_retries = max(1, max_retries)
        self.base_delay = base_delay

    def _call(self, prompt: str, schema: Optional[dict]) -> Any:
        config: dict[str, Any] = {
            "temperature": self.temperature,
            "max_output_tokens": self.max_output_tokens,
            "response_mime_type": "application/json",
        }
        if schema:
            config["response_schema"] = schema
        return self.client.models.generate_content(
            model=self.model_name,
            contents=prompt,
            config=config,
        )

    async def generate_json(self, prompt: str, schema: Optional[dict] = None) -> dict[str, Any]:
        last_error: Optional[Exception] = None
        for attempt in range(self.max_retries):
            try:
                response = await asyncio.to_thread(self._call, prompt, schema)
                json_text = response.text
                if json_text is None:
                    json_text = extract_json_from_gemini_response(response)
                try:
                    return parse_json_text(json_text)
                except LLMResponseError:
                    # Concatenated parts: {"a"}{"b"}
                    return parse_json_text(extract_json_from_gemini_response(response))
            except Exception as e:
                last_error = e

            if attempt < self.max_retries - 1:
                delay = self.base_delay * (2 ** attempt)
                logger.warning(
                    "Gemini call failed (%s), retrying in %.1fs (attempt %d/%d)",
                    last_error, delay, attempt + 1, self.max_retries,
                )
                await asyncio.sleep(delay)

        if isinstance(last_error, LLMResponseError):
            raise last_error
        raise LLMResponseError(f"Gemini call failed after {self.max_retries} attempts: {last_error}") from last_error


class OpenAIClient(GenerativeClient):
    """OpenAI chat completions in JSON mode."""

    def __init__(
        self,
        client: Any,
        model_id: str = "gpt-4o-mini",
        temperature: float = 0.2,
        max_output_tokens: int = 2048,
    ):
        self.client = client
        self.model_name = model_id
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens

    async def generate_json(self, prompt: str, schema: Optional[dict] = None) -> dict[str, Any]:
        try:
            response = await self.client.chat.completions.create(
                model=self.model_name,
                messages=[
                    {"role": "system", "content": "You are a nonpartisan legislative research assistant. Return valid JSON only."},
                    {"role": "user", "content": prompt},
                ],
                temperature=self.temperature,
                max_tokens=self.max_output_tokens,
                response_format={"type": "json_object"},
            )
        except openai.OpenAIError as e:
            raise LLMResponseError(f"OpenAI call failed: {e}") from e
        return parse_json_text(response.choices[0].message.content)


def create_llm_client(config: dict[str, Any]) -> GenerativeClient:
    """
    Build the generative client selected by llm.provider.

    Gemini uses Vertex AI when VERTEX_PROJECT_ID is set, else GOOGLE_API_KEY.

    Raises:
        APIKeyMissingError: Provider is disabled or its credentials are missing
    """
    llm_config = config.get("llm", {})
    provider = (llm_config.get("provider") or "none").lower()
    keys = get_api_keys()
    temperature = llm_config.get("temperature", 0.2)
    max_tokens = llm_config.get("max_output_tokens", 2048)

    if provider == "gemini":
        model_id = llm_config.get("gemini", {}).get("model", "gemini-1.5-flash")
        if keys["vertex_project"]:
            client = genai.Client(
                vertexai=True,
                project=keys["vertex_project"],
                location=keys["vertex_location"],
            )
        elif keys["google"]:
            client = genai.Client(api_key=keys["google"])
        else:
            raise APIKeyMissingError("Set VERTEX_PROJECT_ID or GOOGLE_API_KEY to enable Gemini")
        return GeminiClient(
            client,
            model_id=model_id,
            temperature=temperature,
            max_output_tokens=max_tokens,
            max_retries=llm_config.get("max_retries", 2),
        )

    if provider == "openai":
        if not keys["openai"]:
            raise APIKeyMissingError("Set OPENAI_API_KEY to enable the OpenAI provider")
        return OpenAIClient(
            openai.AsyncOpenAI(api_key=keys["openai"]),
            model_id=llm_config.get("openai", {}).get("model", "gpt-4o-mini"),
            temperature=temperature,
            max_output_tokens=max_tokens,
        )

    raise APIKeyMissingError(f"LLM provider '{provider}' is disabled")


@functools.lru_cache(maxsize=1)
def get_llm_client() -> Optional[GenerativeClient]:
    """Process-wide generative client, or None when generation is not configured."""
    try:
        return create_llm_client(load_config())
    except APIKeyMissingError as e:
        logger.info("Generative answers disabled: %s", e)
        return None
