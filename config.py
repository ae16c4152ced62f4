"""Shared configuration and utilities for ReviewRanger."""

import functools
import logging
import os
import re
import time

import requests
import requests.exceptions
from dotenv import load_dotenv
from google import genai
from google.api_core.exceptions import (
    DeadlineExceeded,
    InternalServerError,
    ServiceUnavailable,
    TooManyRequests,
)

from mock_data import MOCK_RESPONSE

# ---------------------------------------------------------------------------
# Environment & logging (initialised once on first import)
# ---------------------------------------------------------------------------
load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
USE_MOCK: bool = os.getenv("USE_MOCK", "false").lower() == "true"
AI_PROVIDER: str = os.getenv("AI_PROVIDER", "http").lower()
AI_API_BASEURL: str = os.getenv("AI_API_BASEURL", "http://localhost:11434")
DEFAULT_MODEL: str = os.getenv("AI_MODEL", "deepseek-v2:16b")
GEMINI_MODEL: str = os.getenv("GEMINI_MODEL", "gemini-2.5-flash-lite")
REQUEST_TIMEOUT: int = 300  # local models can take minutes on large files

# Repo format: "owner/repo"
_REPO_PATTERN = re.compile(r"^[\w.-]+/[\w.-]+$")

# Gemini errors worth retrying (transient / rate-limit)
_RETRYABLE_GEMINI_ERRORS: tuple[type[Exception], ...] = (
    ServiceUnavailable,
    TooManyRequests,
    DeadlineExceeded,
    InternalServerError,
)

_RETRYABLE_HTTP_ERRORS: tuple[type[Exception], ...] = (
    requests.exceptions.ConnectionError,
    requests.exceptions.Timeout,
)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------
def validate_repo(repo: str) -> str:
    """Validate repository string matches 'owner/repo' format.

    Returns *repo* unchanged on success; raises ``ValueError`` otherwise.
    """
    if not _REPO_PATTERN.match(repo):
        raise ValueError(
            f"Invalid repo format: {repo!r}. Expected 'owner/repo' "
            f"(e.g. 'octo-org/storefront')."
        )
    return repo


# ---------------------------------------------------------------------------
# Retry decorator
# ---------------------------------------------------------------------------
def with_retry(
    max_retries: int = 3,
    base_delay: float = 1.0,
    retryable: tuple[type[Exception], ...] = (Exception,),
):
    """Decorator: retry a function with exponential back-off."""

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            last_exc: Exception | None = None
            for attempt in range(max_retries):
                try:
                    return func(*args, **kwargs)
                except retryable as exc:
                    last_exc = exc
                    if attempt < max_retries - 1:
                        delay = base_delay * (2**attempt)
                        logger.warning(
                            "Attempt %d/%d for %s failed: %s. Retrying in %.1fs...",
                            attempt + 1,
                            max_retries,
                            func.__name__,
                            exc,
                            delay,
                        )
                        time.sleep(delay)
            raise last_exc  # type: ignore[misc]

        return wrapper

    return decorator


# ---------------------------------------------------------------------------
# Text-generation endpoint (Ollama-style /api/generate)
# ---------------------------------------------------------------------------
@with_retry(max_retries=3, base_delay=2.0, retryable=_RETRYABLE_HTTP_ERRORS)
def call_generate_endpoint(prompt: str, model: str = DEFAULT_MODEL) -> str:
    """POST *prompt* to the generate endpoint and return the generated text.

    Raises ``requests.HTTPError`` on a non-2xx status and ``ValueError`` when
    the body carries no generated text.
    """
    response = requests.post(
        f"{AI_API_BASEURL.rstrip('/')}/api/generate",
        json={"model": model, "prompt": prompt, "stream": False},
        timeout=REQUEST_TIMEOUT,
    )
    response.raise_for_status()

    data = response.json()
    text = data.get("response") or data.get("output") or data.get("generated_text")
    if not text:
        raise ValueError(f"Model endpoint returned no text (keys: {sorted(data)})")
    return text


# ---------------------------------------------------------------------------
# Gemini (alternative provider)
# ---------------------------------------------------------------------------
@functools.lru_cache(maxsize=1)
def get_gemini_client() -> genai.Client:
    """Return a cached Gemini client (created once per process)."""
    api_key = os.getenv("GEMINI_API_KEY")
    if not api_key:
        raise ValueError("GEMINI_API_KEY not found. Set it in .env file.")
    return genai.Client(api_key=api_key)


@with_retry(max_retries=3, base_delay=2.0, retryable=_RETRYABLE_GEMINI_ERRORS)
def call_gemini(prompt: str, model: str = GEMINI_MODEL) -> str:
    """Call Gemini and return the raw response text.

    Retries automatically on transient API errors.
    """
    client = get_gemini_client()
    response = client.models.generate_content(
        model=model,
        contents=prompt,
        config={"response_mime_type": "application/json"},
    )
    return response.text or ""


def call_model(prompt: str) -> str:
    """Send *prompt* to the configured provider and return the raw text."""
    if USE_MOCK:
        logger.info("[MOCK MODE - No API call made]")
        return MOCK_RESPONSE

    if AI_PROVIDER == "http":
        return call_generate_endpoint(prompt)
    if AI_PROVIDER == "gemini":
        return call_gemini(prompt)

    raise ValueError(
        f"Unknown AI_PROVIDER: {AI_PROVIDER!r}. Expected 'http' or 'gemini'."
    )
