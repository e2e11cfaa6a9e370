"""
Gemini AI client.

Thin wrapper over google.generativeai that turns provider failures into
AIError, keeping the upstream HTTP status so callers can decide whether a
retry is worthwhile.
"""
import re
from typing import Optional
import google.generativeai as genai

from app.config import get_settings
from app.utils.logger import get_logger
from app.utils.errors import AIError

logger = get_logger(__name__)

# Configure Gemini
settings = get_settings()
if settings.gemini_api_key:
    genai.configure(api_key=settings.gemini_api_key)

# Tried in order after the configured model when a model is not found
FALLBACK_MODELS = ["gemini-2.0-flash", "gemini-1.5-flash"]


def is_configured() -> bool:
    return bool(settings.gemini_api_key)


def upstream_status(error: Exception) -> Optional[int]:
    """Best-effort HTTP status of a google.api_core / SDK error."""
    for attr in ("code", "status_code", "status"):
        value = getattr(error, attr, None)
        if isinstance(value, int):
            return int(value)
    return None


async def complete(
    prompt: str,
    max_tokens: int = 2048,
    temperature: float = 0.2,
) -> str:
    """
    Generate a completion using Gemini.

    Args:
        prompt: The user prompt
        max_tokens: Maximum tokens in response
        temperature: Creativity parameter (0-1)

    Returns:
        The generated text response

    Raises:
        AIError: If Gemini API fails (upstream_status set when known)
    """
    if not is_configured():
        raise AIError("Gemini API key not configured")

    candidates = [settings.gemini_model] + [m for m in FALLBACK_MODELS if m != settings.gemini_model]
    last_error = None

    for model_name in candidates:
        try:
            model = genai.GenerativeModel(
                model_name=model_name,
                generation_config=genai.types.GenerationConfig(
                    max_output_tokens=max_tokens,
                    temperature=temperature,
                ),
            )

            logger.info(f"Attempting generation with model: {model_name}")
            response = await model.generate_content_async(prompt)

            if not response.candidates:
                raise AIError("No candidates returned from Gemini")

            candidate = response.candidates[0]
            if not candidate.content.parts:
                raise AIError(f"Empty response (Finish Reason: {candidate.finish_reason}) from {model_name}")

            try:
                content = response.text.strip()
            except ValueError:
                content = candidate.content.parts[0].text.strip()

            if not content:
                raise AIError("Received empty text content")

            logger.debug(f"Gemini response: {content[:100]}...")
            return content

        except AIError:
            raise
        except Exception as e:
            status = upstream_status(e)
            error_str = str(e)
            # Unknown model: try the next candidate
            if status == 404 or "not found" in error_str.lower():
                logger.warning(f"Model {model_name} failed (Not Found), trying next...")
                last_error = e
                continue
            logger.error(f"Gemini API error: {error_str}")
            raise AIError(f"Gemini request failed: {error_str}", upstream_status=status)

    raise AIError(f"All AI models failed: {last_error}", upstream_status=upstream_status(last_error) if last_error else None)


def strip_code_fence(text: str) -> str:
    """Remove a ```json ... ``` (or bare ```) wrapper around a response."""
    cleaned = text.strip()
    match = re.match(r'^```(?:json)?\s*([\s\S]*?)\s*```$', cleaned)
    if match:
        return match.group(1).strip()
    return cleaned
