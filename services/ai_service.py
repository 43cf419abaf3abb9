"""
AI Service for generated document copy.

Wraps the OpenAI Chat Completions API with a model fallback chain, so a
model that is unavailable or rate limited hands over to the next one.

Model Hierarchy:
1. Primary: GPT-4o
2. Fallback: GPT-4o-mini
3. Legacy: GPT-3.5-turbo

Usage:
    from services.ai_service import generate_ai_response

    text = generate_ai_response(
        system_prompt="You write property marketing copy...",
        user_prompt="Property: 742 Evergreen Terrace ...",
    )
"""

import logging
from typing import Optional

import openai

from config import Config

logger = logging.getLogger(__name__)

PRIMARY_MODEL = "gpt-4o"
FALLBACK_MODEL = "gpt-4o-mini"
LEGACY_MODEL = "gpt-3.5-turbo"
MODEL_CHAIN = (PRIMARY_MODEL, FALLBACK_MODEL, LEGACY_MODEL)

# Errors that hand over to the next model (not available, rate limited, etc.)
FALLBACK_ERRORS = (
    openai.NotFoundError,
    openai.AuthenticationError,
    openai.PermissionDeniedError,
    openai.RateLimitError,
)
FALLBACK_ERROR_CODES = [401, 403, 404, 429]


def _should_fallback(error) -> bool:
    if isinstance(error, FALLBACK_ERRORS):
        return True
    return getattr(error, 'status_code', None) in FALLBACK_ERROR_CODES


def _call_chat_completions_api(client, model: str, system_prompt: str, user_prompt: str,
                               temperature: float, max_tokens: int) -> str:
    response = client.chat.completions.create(
        model=model,
        messages=[
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt}
        ],
        temperature=temperature,
        max_tokens=max_tokens
    )
    return (response.choices[0].message.content or "").strip()


def generate_ai_response(
    system_prompt: str,
    user_prompt: str,
    temperature: float = 0.7,
    max_tokens: int = 300,
    api_key: Optional[str] = None
) -> str:
    """
    Generate text using the model fallback chain.

    Raises:
        ValueError: no API key is configured
        openai.APIError: the last model failed, or a model failed in a
            way the next one would not fix
    """
    key = api_key or Config.OPENAI_API_KEY
    if not key:
        logger.error("OpenAI API key is not configured!")
        raise ValueError("OpenAI API key is not configured")

    client = openai.OpenAI(api_key=key)

    for position, model in enumerate(MODEL_CHAIN, start=1):
        try:
            logger.info(f"[{position}/{len(MODEL_CHAIN)}] Attempting model: {model}")
            result = _call_chat_completions_api(client, model, system_prompt, user_prompt,
                                                temperature, max_tokens)
            logger.info(f"SUCCESS: Generated response with {model}")
            return result
        except openai.APIError as e:
            if position == len(MODEL_CHAIN) or not _should_fallback(e):
                logger.error(f"FATAL: {model} failed: {e}")
                raise
            logger.warning(f"FALLBACK TRIGGERED: {model} failed with {type(e).__name__}. Error: {e}")
