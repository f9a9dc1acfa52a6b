"""
Generation client for journal_rag.

Sends the assembled prompt to a local Ollama-compatible backend
(`POST /api/generate`, non-streaming) and returns the response text. Every
transport, status or decoding failure is raised as GenerationBackendError;
nothing is retried.
"""

import os
import re
from typing import Optional

import requests

from journal_rag.errors import GenerationBackendError
from journal_rag.logging_config import get_logger

log = get_logger(__name__)

DEFAULT_BASE_URL = "http://localhost:11434"
DEFAULT_GEN_MODEL = "llama3.2"
DEFAULT_TIMEOUT = 30.0
DEFAULT_MAX_TOKENS = 512
DEFAULT_RESPONSE_CHAR_LIMIT = 1800

_SENTENCE_END = re.compile(r"[.!?](?=\s|$)")


def apply_response_limit(text: str, max_characters: int = DEFAULT_RESPONSE_CHAR_LIMIT) -> str:
    """
    Shorten an over-long answer so it still reads as finished.

    Prefers the last sentence end inside the final 200 characters of the
    allowed window; otherwise cuts at the last space and appends "...".
    """
    if len(text) <= max_characters:
        return text

    window = text[:max_characters]
    search_from = max(0, max_characters - 200)
    last_end = None
    for match in _SENTENCE_END.finditer(text, search_from, max_characters):
        last_end = match.end()
    if last_end is not None:
        return text[:last_end].strip()

    last_space = window.rfind(" ")
    if last_space > 0:
        window = window[:last_space]
    return window.rstrip() + "..."


class GenerationClient:
    """Thin synchronous client for the generation backend."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.base_url = (base_url or os.environ.get("JOURNAL_RAG_OLLAMA_URL", DEFAULT_BASE_URL)).rstrip("/")
        self.model = model or os.environ.get("JOURNAL_RAG_GEN_MODEL", DEFAULT_GEN_MODEL)
        self.timeout = timeout if timeout is not None else float(
            os.environ.get("JOURNAL_RAG_GEN_TIMEOUT", DEFAULT_TIMEOUT)
        )

    def generate(self, prompt: str, max_tokens: int = DEFAULT_MAX_TOKENS) -> str:
        """
        Generate a completion for the prompt.

        Args:
            prompt: Fully assembled prompt
            max_tokens: Upper bound on generated tokens (`num_predict`)

        Returns:
            The backend's response text, stripped

        Raises:
            GenerationBackendError: on timeout, connection failure, non-2xx
                status or an unreadable body
        """
        url = f"{self.base_url}/api/generate"
        headers = {"Content-Type": "application/json"}
        payload = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "options": {"num_predict": max_tokens},
        }

        try:
            response = requests.post(url, json=payload, headers=headers, timeout=self.timeout)
            response.raise_for_status()
            body = response.json()
        except requests.Timeout as exc:
            log.error("Generation backend timed out after %.1fs: %s", self.timeout, exc)
            raise GenerationBackendError(f"Generation backend timed out: {exc}") from exc
        except requests.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else "error"
            log.error("Generation backend returned %s", status)
            raise GenerationBackendError(f"Generation backend returned HTTP {status}") from exc
        except ValueError as exc:
            log.error("Generation backend sent an unreadable body: %s", exc)
            raise GenerationBackendError(f"Could not parse generation response: {exc}") from exc
        except requests.RequestException as exc:
            log.error("Generation backend unreachable at %s: %s", url, exc)
            raise GenerationBackendError(f"Generation backend unreachable at {url}: {exc}") from exc

        if not isinstance(body, dict) or not isinstance(body.get("response"), str):
            raise GenerationBackendError("Generation response has no 'response' text")
        return body["response"].strip()
