"""DSPy-backed JSON programs and the pooled call helper used by every agent."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Optional

import dspy

from taxonomist.config.models import LLMSettings
from taxonomist.workers import WorkerPool

from .results import AgentResult, Fallback, Ok

LOGGER = logging.getLogger(__name__)

JSONProgram = Callable[[str, str], str]


class JSONResponseSignature(dspy.Signature):
    """Follow the instructions and answer with a single JSON object."""

    task: str = dspy.InputField(desc="Task description and required response shape.")
    payload: str = dspy.InputField(desc="JSON document describing the files involved.")
    response_json: str = dspy.OutputField(desc="A single JSON object, without markdown fences.")


def is_configured(settings: LLMSettings) -> bool:
    """Return ``True`` when the user changed the language model away from the defaults."""
    defaults = LLMSettings()
    return any(
        [
            settings.api_base_url,
            settings.api_key,
            settings.provider != defaults.provider,
            settings.model != defaults.model,
        ]
    )


def model_identifier(settings: LLMSettings) -> str:
    """Return the ``provider/model`` string understood by DSPy."""
    if "/" in settings.model:
        return settings.model
    provider = "ollama_chat" if settings.provider == "local" else settings.provider
    return f"{provider}/{settings.model}"


class DSPyJSONProgram:
    """Callable ``(instructions, payload) -> str`` backed by a DSPy predictor."""

    def __init__(self, settings: LLMSettings) -> None:
        """Configure the DSPy language model described by ``settings``.

        Args:
            settings: Language model configuration.
        """

        lm_kwargs: dict[str, object] = {
            "model": model_identifier(settings),
            "temperature": settings.temperature,
            "max_tokens": settings.max_tokens,
        }
        if settings.api_base_url:
            lm_kwargs["api_base"] = settings.api_base_url
        if settings.api_key is not None:
            lm_kwargs["api_key"] = settings.api_key

        self._settings = settings
        self._language_model = dspy.LM(**lm_kwargs)
        self._predict = dspy.Predict(JSONResponseSignature)

    @property
    def model(self) -> str:
        return model_identifier(self._settings)

    def __call__(self, instructions: str, payload: str) -> str:
        with dspy.context(lm=self._language_model):
            prediction = self._predict(task=instructions, payload=payload)
        response = getattr(prediction, "response_json", "")
        return response if isinstance(response, str) else str(response or "")


def build_json_program(settings: Optional[LLMSettings] = None) -> Optional[DSPyJSONProgram]:
    """Return a JSON program for ``settings`` or ``None`` when no model is usable.

    Agents given ``None`` fall back to their deterministic behaviour.
    """

    settings = settings or LLMSettings()
    if not is_configured(settings):
        LOGGER.warning(
            "No language model configured; taxonomy generation will use fallback plans. "
            "Set llm.provider/llm.model to enable it."
        )
        return None

    if (
        settings.provider != "local"
        and settings.api_key is None
        and settings.api_base_url is None
        and "/" not in settings.model
    ):
        LOGGER.warning(
            "Provider %s needs llm.api_key or llm.api_base_url; using fallback behaviour.",
            settings.provider,
        )
        return None

    try:
        program = DSPyJSONProgram(settings)
    except Exception as exc:  # pragma: no cover - DSPy configuration errors
        LOGGER.warning("Unable to configure the DSPy language model: %s", exc)
        return None
    LOGGER.info("Using language model %s", program.model)
    return program


async def call_program(
    program: Optional[JSONProgram],
    pool: WorkerPool,
    instructions: str,
    payload: str,
    *,
    label: str,
    timeout_seconds: float,
) -> AgentResult[str]:
    """Run ``program`` on one of the pool's threads under its concurrency limit.

    The timeout starts once the pool admits the call, so time spent queued
    behind other calls never counts against it.

    Args:
        program: JSON program to call, or ``None`` when no model is configured.
        pool: Worker pool bounding concurrent calls.
        instructions: Task instructions.
        payload: Serialized request payload.
        label: Short description used in log messages.
        timeout_seconds: Upper bound for the call.

    Returns:
        AgentResult[str]: ``Ok`` with the raw response text, or ``Fallback`` with
        an empty string when the call was impossible, failed, timed out, or
        returned nothing.
    """

    if program is None:
        return Fallback("", "no language model configured")

    LOGGER.debug("Language model call: %s (%d chars)", label, len(instructions) + len(payload))
    pool.log_stats()
    started = time.monotonic()

    async def run() -> str:
        return await asyncio.wait_for(
            pool.run_blocking(program, instructions, payload), timeout=timeout_seconds
        )

    try:
        text = await pool.execute(run)
    except asyncio.CancelledError:
        current = asyncio.current_task()
        if current is not None and current.cancelling():
            raise
        LOGGER.warning("%s was cancelled by pool shutdown; using fallback", label)
        return Fallback("", f"{label} cancelled before it started")
    except asyncio.TimeoutError:
        LOGGER.warning("%s timed out after %.0fs; using fallback", label, timeout_seconds)
        return Fallback("", f"{label} timed out after {timeout_seconds:.0f}s")
    except Exception as exc:
        LOGGER.warning("%s failed: %s; using fallback", label, exc)
        return Fallback("", f"{label} failed: {exc}")

    elapsed = time.monotonic() - started
    if not text or not text.strip():
        LOGGER.warning("%s returned an empty response; using fallback", label)
        return Fallback("", f"{label} returned an empty response")
    LOGGER.debug("%s completed in %.1fs (%d chars)", label, elapsed, len(text))
    return Ok(text)


class LanguageModelAgent:
    """Shared plumbing for agents that call a JSON program through a worker pool."""

    def __init__(
        self,
        program: Optional[JSONProgram] = None,
        *,
        pool: Optional[WorkerPool] = None,
        timeout_seconds: float = 180.0,
    ) -> None:
        self._program = program
        self._pool = pool or WorkerPool()
        self._timeout_seconds = timeout_seconds

    @property
    def available(self) -> bool:
        """Return ``True`` when a language model program is attached."""
        return self._program is not None

    async def _ask(self, instructions: str, payload: str, *, label: str) -> AgentResult[str]:
        return await call_program(
            self._program,
            self._pool,
            instructions,
            payload,
            label=label,
            timeout_seconds=self._timeout_seconds,
        )


__all__ = [
    "JSONProgram",
    "JSONResponseSignature",
    "DSPyJSONProgram",
    "LanguageModelAgent",
    "build_json_program",
    "call_program",
    "is_configured",
    "model_identifier",
]
