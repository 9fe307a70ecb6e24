"""Text-generation service used by the orchestrator.

``GenerationService`` is the contract the orchestrator depends on.
``LLMGenerationService`` implements it against any OpenAI-compatible
chat endpoint:

- **Groq** (default): free tier, fastest inference
  Get API key: https://console.groq.com/
- **OpenAI**: GPT-4o, GPT-4o-mini
- **Anthropic**: Claude through the OpenAI-compatible endpoint
- **Hugging Face**: router with OpenAI-compatible chat completions

With ``use_dummy=True`` it answers deterministically without network
access, which is what the example script and tests use.
"""

from __future__ import annotations

import json
import os
import re
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Literal

from dotenv import load_dotenv
from loguru import logger
from pydantic import AliasChoices, BaseModel, Field, ValidationError, field_validator

from mind_canvas.exceptions import GenerationError
from mind_canvas.topics import extract_topics

if TYPE_CHECKING:
    from collections.abc import Sequence


load_dotenv()

Provider = Literal["groq", "openai", "anthropic", "huggingface"]


class AnswerResult(BaseModel):
    """Answer plus proposed follow-up questions."""

    answer: str = Field(min_length=1)
    follow_ups: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("follow_ups", "followUps", "followUpQuestions"),
    )

    @field_validator("follow_ups", mode="before")
    @classmethod
    def _clean_follow_ups(cls, value: Any) -> list[str]:
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        return [str(q).strip() for q in value if str(q).strip()]


class TopicResult(BaseModel):
    explanation: str = Field(min_length=1)


class SynthesisResult(BaseModel):
    title: str = Field(min_length=1)
    content: str = Field(min_length=1)


class GenerationService(ABC):
    """Black-box text generation collaborator.

    Every method may raise ``GenerationError``; implementations wrap
    transport and parsing failures in it.
    """

    @abstractmethod
    async def query(self, text: str) -> AnswerResult:
        """Answer an initial question."""

    @abstractmethod
    async def follow_up(self, text: str, context: Sequence[str]) -> AnswerResult:
        """Answer a follow-up question given root-first ancestor context."""

    @abstractmethod
    async def topic(self, term: str, context: Sequence[str]) -> TopicResult:
        """Explain a term in the context it was clicked in."""

    @abstractmethod
    async def synthesize(
        self, contexts: Sequence[str], custom_prompt: str | None = None
    ) -> SynthesisResult:
        """Combine several question/answer blocks into one titled summary."""


QUERY_SYSTEM_PROMPT = """You are an assistant integrated into a mind mapping tool.
Your answer is shown in a node and each follow-up question becomes a child node.
Respond with a JSON object:
{"answer": "...", "followUpQuestions": ["...", "...", "..."]}
Give a clear answer and 3-5 follow-up questions exploring different aspects."""

FOLLOW_UP_SYSTEM_PROMPT = """You are an assistant integrated into a mind mapping tool.
The user asks a follow-up question; previous exchanges are given as context.
Respond with a JSON object:
{"answer": "...", "followUpQuestions": ["...", "..."]}
Build on the context and give 2-3 further follow-up questions."""

TOPIC_SYSTEM_PROMPT = """You are an assistant integrated into a mind mapping tool.
Explain the given term concisely in the context of the conversation.
Respond with a JSON object: {"explanation": "..."}"""

SYNTHESIS_DEFAULT_PROMPT = """Synthesize the selected insights from my mind map into a coherent summary with a meaningful title.
Respond with a JSON object: {"title": "...", "content": "..."}"""


def clean_json_response(response: str) -> str:
    """Strip markdown code fences and surrounding prose from a JSON reply.

    Args:
        response: Raw response string

    Returns:
        Cleaned JSON string
    """
    response = response.strip()
    if response.startswith("```"):
        lines = response.split("\n")
        # Skip first line (```json or ```) and last line (```)
        if len(lines) > 2:
            response = "\n".join(lines[1:-1])

    response = response.strip()
    start, end = response.find("{"), response.rfind("}")
    if start != -1 and end > start:
        response = response[start:end + 1]
    return response


def _extract_string_field(text: str, name: str) -> str | None:
    match = re.search(rf'"{name}"\s*:\s*"(.*?)(?<!\\)"', text, re.DOTALL)
    if not match:
        return None
    return match.group(1).replace('\\"', '"').replace("\\n", "\n")


def _extract_list_field(text: str, names: Sequence[str]) -> list[str] | None:
    for name in names:
        match = re.search(rf'"{name}"\s*:\s*\[(.*?)\]', text, re.DOTALL)
        if not match:
            continue
        try:
            items = json.loads(f"[{match.group(1)}]")
        except json.JSONDecodeError:
            items = re.findall(r'"(.*?)(?<!\\)"', match.group(1), re.DOTALL)
        return [str(item) for item in items]
    return None


def parse_payload(raw: str, string_fields: Sequence[str], list_fields: Sequence[str] = ()) -> dict[str, Any]:
    """Parse a model reply into a dict, salvaging fields if the JSON is broken.

    Args:
        raw: Raw model output
        string_fields: String fields to salvage by regex
        list_fields: List field names (any alias) to salvage by regex

    Returns:
        Parsed dictionary

    Raises:
        GenerationError: If nothing usable can be recovered
    """
    if not raw or not raw.strip():
        raise GenerationError("Empty response from generation service")

    cleaned = clean_json_response(raw)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        logger.warning("Response was not valid JSON, salvaging fields by pattern")
        data = {}
        for name in string_fields:
            value = _extract_string_field(cleaned, name)
            if value is not None:
                data[name] = value
        if list_fields:
            items = _extract_list_field(cleaned, list_fields)
            if items is not None:
                data[list_fields[0]] = items
        if not data:
            raise GenerationError(f"Could not parse response: {cleaned[:80]!r}")

    if not isinstance(data, dict):
        raise GenerationError(f"Expected a JSON object, got {type(data).__name__}")
    return data


class LLMGenerationService(GenerationService):
    """Generation service backed by an OpenAI-compatible chat endpoint."""

    # Default models per provider
    DEFAULT_MODELS = {
        "groq": "llama-3.1-8b-instant",
        "openai": "gpt-4o-mini",
        "anthropic": "claude-3-5-haiku-latest",
        "huggingface": "meta-llama/Llama-3.1-8B-Instruct",
    }

    # Base URLs for each provider
    BASE_URLS = {
        "groq": "https://api.groq.com/openai/v1",
        "openai": None,  # Use OpenAI default
        "anthropic": "https://api.anthropic.com/v1/",
        "huggingface": "https://router.huggingface.co/v1",
    }

    API_KEY_ENV = {
        "groq": "GROQ_API_KEY",
        "openai": "OPENAI_API_KEY",
        "anthropic": "ANTHROPIC_API_KEY",
        "huggingface": "HUGGINGFACE_API_KEY",
    }

    def __init__(
        self,
        model: str | None = None,
        temperature: float = 0.7,
        use_dummy: bool = False,
        provider: Provider = "groq",
        api_key: str | None = None,
        base_url: str | None = None,
        max_tokens: int = 4000,
        timeout: float = 60.0,
        client: Any = None,
    ) -> None:
        """Initialize the generation service.

        Args:
            model: Model name (uses provider default if None)
            temperature: Sampling temperature for generation
            use_dummy: Answer offline with deterministic text (no API calls)
            provider: Provider to use ('groq', 'openai', 'anthropic', 'huggingface')
            api_key: API key (uses provider env var if None)
            base_url: Custom base URL (uses provider default if None)
            max_tokens: Maximum tokens per completion
            timeout: Request timeout in seconds
            client: Pre-built async client exposing ``chat.completions.create``
        """
        if provider not in self.DEFAULT_MODELS:
            raise ValueError(f"Unknown provider: {provider}")

        self.provider = provider
        self.temperature = temperature
        self.use_dummy = use_dummy
        self.max_tokens = max_tokens
        self.model = model or self.DEFAULT_MODELS[provider]
        self.client = client

        if client is None and not use_dummy:
            from openai import AsyncOpenAI

            if api_key is None:
                api_key = os.getenv(self.API_KEY_ENV[provider])
            if not api_key:
                raise ValueError(f"{self.API_KEY_ENV[provider]} environment variable not set")

            self.client = AsyncOpenAI(
                api_key=api_key,
                base_url=base_url or self.BASE_URLS.get(provider),
                timeout=timeout,
            )

    async def _complete(self, system_prompt: str, user_prompt: str) -> str:
        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        if self.provider == "openai":
            kwargs["response_format"] = {"type": "json_object"}

        response = await self.client.chat.completions.create(**kwargs)
        return response.choices[0].message.content or ""

    async def _generate(self, operation: str, system_prompt: str, user_prompt: str, parse) -> Any:
        try:
            raw = await self._complete(system_prompt, user_prompt)
            return parse(raw)
        except GenerationError:
            raise
        except ValidationError as e:
            logger.error(f"Invalid {operation} response: {e.error_count()} validation error(s)")
            raise GenerationError(f"Invalid {operation} response") from e
        except Exception as e:
            logger.error(f"Error calling generation service for {operation}: {e}")
            raise GenerationError(f"Failed to {operation} with {self.provider}") from e

    @staticmethod
    def _parse_answer(raw: str) -> AnswerResult:
        data = parse_payload(raw, ("answer",), ("followUpQuestions", "followUps", "follow_ups"))
        return AnswerResult.model_validate(data)

    @staticmethod
    def _parse_topic(raw: str) -> TopicResult:
        return TopicResult.model_validate(parse_payload(raw, ("explanation",)))

    @staticmethod
    def _parse_synthesis(raw: str) -> SynthesisResult:
        return SynthesisResult.model_validate(parse_payload(raw, ("title", "content")))

    async def query(self, text: str) -> AnswerResult:
        if self.use_dummy:
            return self._dummy_answer(text, [])
        return await self._generate("process query", QUERY_SYSTEM_PROMPT, text, self._parse_answer)

    async def follow_up(self, text: str, context: Sequence[str]) -> AnswerResult:
        if self.use_dummy:
            return self._dummy_answer(text, context)
        user_prompt = (
            "Previous conversation context:\n\n"
            + "\n\n".join(context)
            + f"\n\nFollow-up question: {text}"
        )
        return await self._generate(
            "process follow-up", FOLLOW_UP_SYSTEM_PROMPT, user_prompt, self._parse_answer
        )

    async def topic(self, term: str, context: Sequence[str]) -> TopicResult:
        if self.use_dummy:
            return TopicResult(
                explanation=f"{term} is a concept that appears in this discussion "
                f"({len(context)} lines of context)."
            )
        user_prompt = "Context:\n\n" + "\n\n".join(context) + f"\n\nTerm to explain: {term}"
        return await self._generate(
            "explain topic", TOPIC_SYSTEM_PROMPT, user_prompt, self._parse_topic
        )

    async def synthesize(
        self, contexts: Sequence[str], custom_prompt: str | None = None
    ) -> SynthesisResult:
        if self.use_dummy:
            return SynthesisResult(
                title=f"Synthesis of {len(contexts)} insights",
                content="\n\n".join(contexts) or "No insights selected.",
            )
        insights = "\n\n".join(f"[{i + 1}] {context}" for i, context in enumerate(contexts))
        user_prompt = f"{custom_prompt or SYNTHESIS_DEFAULT_PROMPT}\n\nHere are the selected insights:\n{insights}"
        return await self._generate(
            "synthesize insights", SYNTHESIS_DEFAULT_PROMPT, user_prompt, self._parse_synthesis
        )

    def _dummy_answer(self, text: str, context: Sequence[str]) -> AnswerResult:
        """Deterministic offline answer (no API calls).

        Follow-ups are built from capitalized terms in the question, with
        generic questions filling the rest.
        """
        subject = text.strip().rstrip("?") or "this topic"
        terms = extract_topics(text)
        follow_ups = [f"How does {term} relate to the rest of the question?" for term in terms[:2]]
        follow_ups.extend([
            f"What are the key ideas behind {subject}?",
            f"What are practical examples of {subject}?",
            f"What are common misconceptions about {subject}?",
        ])
        return AnswerResult(
            answer=f"Offline answer to \"{text.strip()}\" built from {len(context)} context lines.",
            follow_ups=follow_ups[:3],
        )

    def __repr__(self) -> str:
        mode = "dummy" if self.use_dummy else self.provider
        return f"LLMGenerationService(provider={mode}, model={self.model})"
