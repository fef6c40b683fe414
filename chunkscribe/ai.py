"""
Completion-backed text transformations: transcript correction, bullet points,
speaker outlines and language detection.
"""

from typing import Any, Optional, Tuple
import logging

from pydantic_ai import Agent

from .config import Config
from .services.text_processing_service import ParallelTextProcessor, ProcessingJob
from .transcription_limits import (
    COMPLETION_CONTEXT_TOKENS,
    COMPLETION_TOKEN_BUDGET,
    LANGUAGE_DETECTION_SAMPLE_CHARS,
)

logger = logging.getLogger(__name__)
config = Config()
SUPPORTED_AI_PROVIDERS = {"openai", "google", "anthropic"}
DEFAULT_AI_MODELS = {
    "openai": "gpt-4o",
    "google": "gemini-2.5-pro",
    "anthropic": "claude-4-sonnet",
}
DEFAULT_LANGUAGE = "English"

correction_prompt_template = (
    "Correct the errors from the following audio transcription and add proper formatting. "
    "Also correct grammar errors. Just output the corrected text in its original language:\n"
    "{text}\n\nCorrected text:"
)

bulletpoints_prompt_template = "Turn the following text into bulletpoints:\n{text}\n\nBulletpoints:"

outline_prompt_template = (
    "Create a {language} speaker outline based on the following script in the language of the script. "
    "The outline shall be detailed enough so it can be used to give a talk right away. "
    "The outline must be in the same language as the script. \n"
    "START SCRIPT\n{text}\nEND SCRIPT\n\nOutline:"
)

language_prompt_template = (
    "Determine the language of the following text. "
    "Do not output any other characters than the language itself:\n{text}\n\nLanguage:"
)


def _parse_llm(value: str) -> Tuple[Optional[str], Optional[str]]:
    if ":" not in value:
        return None, value.strip() or None
    provider, model_name = value.split(":", 1)
    provider = provider.strip().lower()
    model_name = model_name.strip()
    return provider or None, model_name or None


def _resolve_provider_and_model(llm: str) -> Tuple[str, str]:
    provider, model_name = _parse_llm(llm or "")
    if provider not in SUPPORTED_AI_PROVIDERS:
        if provider is not None:
            logger.warning(f"Unknown AI provider '{provider}', falling back to openai")
        provider = "openai"
    return provider, model_name or DEFAULT_AI_MODELS[provider]


def _build_ai_agent(
    *,
    llm: Optional[str] = None,
    ai_api_key: Optional[str] = None,
    output_type: Any = str,
) -> tuple[Agent, str, str]:
    selected_provider, selected_model = _resolve_provider_and_model(llm or config.llm)
    resolved_key = (ai_api_key or "").strip()

    if selected_provider == "openai":
        from pydantic_ai.models.openai import OpenAIModel
        from pydantic_ai.providers.openai import OpenAIProvider

        resolved_key = resolved_key or str(config.openai_api_key or "").strip()
        if not resolved_key:
            raise ValueError("OpenAI provider selected but no API key is configured")
        provider = OpenAIProvider(api_key=resolved_key)
        model = OpenAIModel(selected_model, provider=provider)
    elif selected_provider == "google":
        from pydantic_ai.models.google import GoogleModel
        from pydantic_ai.providers.google_gla import GoogleGLAProvider

        resolved_key = resolved_key or str(config.google_api_key or "").strip()
        if not resolved_key:
            raise ValueError("Google provider selected but no API key is configured")
        provider = GoogleGLAProvider(api_key=resolved_key)
        model = GoogleModel(selected_model, provider=provider)
    else:
        from pydantic_ai.models.anthropic import AnthropicModel
        from pydantic_ai.providers.anthropic import AnthropicProvider

        resolved_key = resolved_key or str(config.anthropic_api_key or "").strip()
        if not resolved_key:
            raise ValueError("Anthropic provider selected but no API key is configured")
        provider = AnthropicProvider(api_key=resolved_key)
        model = AnthropicModel(selected_model, provider=provider)

    return Agent(model=model, output_type=output_type), selected_provider, selected_model


class CompletionClient:
    """Single-prompt text completion backed by a pydantic-ai agent."""

    def __init__(self, agent: Agent, provider: str = "custom", model: str = "custom"):
        self.agent = agent
        self.provider = provider
        self.model = model

    @classmethod
    def from_llm(cls, llm: Optional[str] = None, ai_api_key: Optional[str] = None) -> "CompletionClient":
        agent, provider, model = _build_ai_agent(llm=llm, ai_api_key=ai_api_key)
        return cls(agent, provider, model)

    async def complete(self, prompt: str, max_tokens: Optional[int] = None) -> str:
        model_settings = {"max_tokens": max_tokens} if max_tokens else None
        result = await self.agent.run(prompt, model_settings=model_settings)
        output = getattr(result, "output", None)
        if output is None:
            output = getattr(result, "data", None)
        if output is None:
            raise RuntimeError("AI result did not contain parsed output (expected .output or .data)")
        return str(output).strip()


def _completion_max_tokens(max_tokens: int) -> int:
    return max(1, config.completion_context_tokens - max_tokens)


async def correct_transcription(
    completion: CompletionClient,
    transcription: str,
    max_tokens: int = COMPLETION_TOKEN_BUDGET,
    processor: Optional[ParallelTextProcessor] = None,
) -> str:
    """Fix recognition and grammar errors part by part, rejoined with spaces."""
    processor = processor or ParallelTextProcessor(
        max_concurrency=config.completion_max_concurrency,
        call_timeout_seconds=config.completion_timeout_seconds,
    )
    response_tokens = _completion_max_tokens(max_tokens)

    async def correct_part(part: str) -> str:
        prompt = correction_prompt_template.format(text=part)
        logger.debug("Completing transcription part", extra={"event": "completing_transcription", "prompt": prompt})
        return await completion.complete(prompt, max_tokens=response_tokens)

    return await processor.process(
        ProcessingJob(
            text=transcription,
            token_budget=max_tokens,
            join_separator=" ",
            transform=correct_part,
        )
    )


async def create_bulletpoints(
    completion: CompletionClient,
    text: str,
    max_tokens: int = COMPLETION_TOKEN_BUDGET,
    processor: Optional[ParallelTextProcessor] = None,
) -> str:
    processor = processor or ParallelTextProcessor(
        max_concurrency=config.completion_max_concurrency,
        call_timeout_seconds=config.completion_timeout_seconds,
    )
    response_tokens = _completion_max_tokens(max_tokens)

    async def bulletpoints_for_part(part: str) -> str:
        logger.debug("Creating bulletpoints", extra={"event": "creating_bulletpoints", "part": part})
        prompt = bulletpoints_prompt_template.format(text=part)
        return await completion.complete(prompt, max_tokens=response_tokens)

    return await processor.process(
        ProcessingJob(
            text=text,
            token_budget=max_tokens,
            join_separator="\n",
            transform=bulletpoints_for_part,
        )
    )


async def determine_language(completion: CompletionClient, text: str) -> str:
    """Name the language of ``text``; falls back to English when detection fails."""
    sample = text[:LANGUAGE_DETECTION_SAMPLE_CHARS]
    try:
        language = await completion.complete(language_prompt_template.format(text=sample))
    except Exception as exc:
        logger.warning(
            f"Language detection failed: {exc}",
            extra={"event": "language_detection_failed", "error": str(exc)},
        )
        return DEFAULT_LANGUAGE
    return language or DEFAULT_LANGUAGE


async def create_outline(
    completion: CompletionClient,
    text: str,
    language_completion: Optional[CompletionClient] = None,
) -> str:
    """Build a speaker outline for the whole script in a single completion call."""
    language = await determine_language(language_completion or completion, text)
    prompt = outline_prompt_template.format(language=language, text=text)
    logger.debug("Creating outline", extra={"event": "creating_outline", "prompt": prompt})

    try:
        outline = await completion.complete(prompt)
    except Exception as exc:
        logger.error(
            f"Outline completion failed: {exc}",
            extra={"event": "completion_failed", "error": str(exc)},
        )
        raise

    logger.info(f"Outline created ({len(outline)} chars)", extra={"event": "outline_created"})
    return outline
