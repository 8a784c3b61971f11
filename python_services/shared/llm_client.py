"""
Provider adapters and the unified AI service.

Each adapter knows one provider's request/response shape. Prompt
construction and response validation live in the shared base class, so
every provider returns the same model types. ``UnifiedAIService`` tries the
configured providers in order and falls back on failure.
"""

from __future__ import annotations

import asyncio
import base64
import logging
import random
import string
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, TypeVar, get_origin

import anthropic
import google.generativeai as genai
import openai

from .config import Settings, get_settings
from .errors import (
    AllProvidersFailedError,
    ProviderCallError,
    ProviderNotConfiguredError,
    error_status_code,
)
from .json_utils import parse_with_retry
from .models import (
    AestheticStyle,
    AIProvider,
    BloomLevel,
    Branding,
    CamelModel,
    CurriculumNode,
    Differentiation,
    DocumentSection,
    EducationalStandard,
    InspirationAnalysis,
    InstructionalSuite,
    OutputType,
    Rubric,
    SuiteRequest,
)
from . import prompt_templates as prompts

logger = logging.getLogger(__name__)

T = TypeVar("T")

NO_PROVIDERS_MESSAGE = "No AI providers configured."
NO_DEFAULT_PROVIDER_MESSAGE = (
    "No AI providers configured. Please set at least one API key "
    "(GEMINI_API_KEY, OPENAI_API_KEY, or ANTHROPIC_API_KEY)."
)

PROVIDER_LABELS = {
    AIProvider.GEMINI: "Gemini",
    AIProvider.OPENAI: "OpenAI",
    AIProvider.CLAUDE: "Claude",
}

# Section types models commonly invent, mapped onto the supported ones
_SECTION_TYPE_ALIASES = {
    "short_answer": "question",
    "multiple_choice": "question",
    "mcq": "question",
    "diagram": "diagram_placeholder",
    "drawing": "diagram_placeholder",
    "match": "matching",
    "instructions": "instruction",
}
_SECTION_TYPES = {"text", "question", "instruction", "diagram_placeholder", "matching"}


class _SuiteDraft(CamelModel):
    """The part of a suite the model writes; the rest comes from the request."""
    title: str = ""
    doodle_prompt: Optional[str] = None
    sections: List[DocumentSection]


def new_suite_id() -> str:
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"suite_{int(time.time() * 1000)}_{suffix}"


def unwrap_list(data: Any) -> Any:
    """Accept ``{"nodes": [...]}``-style wrappers where a bare list is expected."""
    if isinstance(data, dict):
        lists = [value for value in data.values() if isinstance(value, list)]
        if len(lists) == 1:
            return lists[0]
    return data


def normalize_nodes(data: Any) -> Any:
    data = unwrap_list(data)
    if isinstance(data, list):
        for index, node in enumerate(data):
            if isinstance(node, dict) and not node.get("id"):
                node["id"] = f"node-{index + 1}"
    return data


def normalize_suite_draft(data: Any) -> Any:
    if isinstance(data, list):
        data = {"sections": data}
    if isinstance(data, dict):
        for index, section in enumerate(data.get("sections") or []):
            if not isinstance(section, dict):
                continue
            if not section.get("id"):
                section["id"] = f"s{index + 1}"
            section_type = str(section.get("type", "text")).strip().lower()
            section_type = _SECTION_TYPE_ALIASES.get(section_type, section_type)
            section["type"] = section_type if section_type in _SECTION_TYPES else "text"
    return data


def _is_list_schema(schema: Any) -> bool:
    return get_origin(schema) is list


class ProviderAdapter(ABC):
    """Base class for a hosted-model provider."""

    provider: AIProvider
    # Appended to document prompts that ask for a bare JSON array
    document_array_hint = ""

    def __init__(self, model: str, fast_model: Optional[str] = None, max_text_length: int = 15000):
        self.model = model
        self.fast_model = fast_model or model
        self.max_text_length = max_text_length

    @property
    def label(self) -> str:
        return PROVIDER_LABELS[self.provider]

    def model_name(self, fast: bool = False) -> str:
        return self.fast_model if fast else self.model

    @abstractmethod
    async def _generate_text(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        fast: bool = False,
        temperature: float = 0.7,
        max_tokens: int = 4096,
    ) -> str:
        """Send a text prompt and return the raw response text."""

    @abstractmethod
    async def _generate_with_document(
        self,
        prompt: str,
        base64_data: str,
        mime_type: str,
        *,
        system: Optional[str] = None,
        max_tokens: int = 4096,
    ) -> str:
        """Send a prompt together with an inline document or image."""

    def _wrap_error(self, error: Exception) -> ProviderCallError:
        if isinstance(error, ProviderCallError):
            return error
        return ProviderCallError(self.label, str(error), status_code=error_status_code(error))

    async def generate_json(
        self,
        prompt: str,
        schema: Any,
        *,
        system: Optional[str] = None,
        fast: bool = False,
        temperature: float = 0.7,
        max_tokens: int = 4096,
        transform: Optional[Callable[[Any], Any]] = None,
    ) -> Any:
        """Generate, validate against ``schema`` and retry once on invalid output."""
        system = system or prompts.JSON_ONLY_SYSTEM
        if transform is None and _is_list_schema(schema):
            transform = unwrap_list

        async def _call(text: str) -> str:
            return await self._generate_text(
                text, system=system, fast=fast, temperature=temperature, max_tokens=max_tokens
            )

        raw = await _call(prompt)
        return await parse_with_retry(
            raw, schema, lambda error: _call(prompts.json_retry_prompt(prompt, error)), transform
        )

    async def analyze_curriculum(
        self, text: str, grade: Optional[str] = None, framework: Optional[str] = None
    ) -> List[CurriculumNode]:
        prompt = prompts.node_decomposition_prompt(text, grade, framework, self.max_text_length)
        return await self.generate_json(prompt, List[CurriculumNode], transform=normalize_nodes)

    async def _document_json(
        self,
        prompt: str,
        base64_data: str,
        mime_type: str,
        schema: Any,
        transform: Optional[Callable[[Any], Any]] = None,
    ) -> Any:
        async def _call(text: str) -> str:
            return await self._generate_with_document(
                text, base64_data, mime_type, system=prompts.JSON_ONLY_SYSTEM
            )

        raw = await _call(prompt)
        return await parse_with_retry(
            raw, schema, lambda error: _call(prompts.json_retry_prompt(prompt, error)), transform
        )

    async def analyze_document(
        self,
        base64_data: str,
        mime_type: str,
        grade: Optional[str] = None,
        framework: Optional[str] = None,
    ) -> List[CurriculumNode]:
        prompt = prompts.document_decomposition_prompt(grade, framework) + self.document_array_hint
        return await self._document_json(prompt, base64_data, mime_type, List[CurriculumNode], normalize_nodes)

    async def analyze_inspiration(
        self, base64_data: str, mime_type: str, copy_layout: bool = True, copy_design: bool = True
    ) -> InspirationAnalysis:
        prompt = prompts.inspiration_prompt(copy_layout, copy_design)
        return await self._document_json(prompt, base64_data, mime_type, InspirationAnalysis)

    async def generate_suite(
        self,
        node: CurriculumNode,
        request: SuiteRequest,
        doodle_base64: Optional[str] = None,
    ) -> InstructionalSuite:
        prompt = prompts.suite_generation_prompt(node, request)
        draft: _SuiteDraft = await self.generate_json(
            prompt, _SuiteDraft, max_tokens=8192, transform=normalize_suite_draft
        )

        suite = InstructionalSuite(
            id=new_suite_id(),
            node_id=node.id,
            title=draft.title or node.title,
            output_type=request.output_type,
            bloom_level=request.bloom_level,
            differentiation=request.differentiation,
            aesthetic=request.aesthetic,
            institution_name=request.branding.institution_name,
            instructor_name=request.branding.instructor_name,
            sections=draft.sections,
            page_count=request.page_count,
            grade_level=request.grade_level,
            standards=request.standards,
            doodle_prompt=draft.doodle_prompt,
            doodle_base64=doodle_base64 or "",
            generated_by=self.model_name(),
            created_at=datetime.now(timezone.utc),
        )

        answered = len(suite.teacher_key)
        if answered:
            logger.info("Generated %d sections, %d with answers", len(suite.sections), answered)
        else:
            logger.warning("No sections have correctAnswer fields. Teacher key will be empty.")

        try:
            suite.rubric = await self.generate_rubric(suite, node, request)
        except Exception as e:
            logger.warning("Failed to generate rubric, continuing without one: %s", e)
        return suite

    async def generate_rubric(
        self, suite: InstructionalSuite, node: CurriculumNode, request: SuiteRequest
    ) -> Rubric:
        sections_summary = "\n".join(
            f"{s.title}: {s.type} ({s.points or 0} points)" for s in suite.sections[:10]
        )
        prompt = prompts.rubric_prompt(
            node,
            request.output_type.value,
            request.bloom_level.value,
            sections_summary,
            request.grade_level,
            request.standards,
        )
        return await self.generate_json(prompt, Rubric, temperature=0.4)

    async def generate_doodle(self, topic: str) -> str:
        raise ProviderNotConfiguredError(f"{self.label} does not support image generation")


class GeminiAdapter(ProviderAdapter):
    """Google Gemini via google-generativeai."""

    provider = AIProvider.GEMINI

    def __init__(self, api_key: str, model: str, fast_model: str, image_model: str, max_text_length: int = 15000):
        super().__init__(model, fast_model, max_text_length)
        self.image_model = image_model
        genai.configure(api_key=api_key)
        logger.info("Gemini adapter initialized (model: %s)", model)

    async def _call_model(self, model_name: str, contents: Any, system: Optional[str], config: Dict[str, Any]) -> Any:
        model = genai.GenerativeModel(model_name, system_instruction=system)
        # The SDK is synchronous
        return await asyncio.to_thread(model.generate_content, contents, generation_config=config)

    async def _generate_text(self, prompt, *, system=None, fast=False, temperature=0.7, max_tokens=4096) -> str:
        try:
            response = await self._call_model(
                self.model_name(fast),
                prompt,
                system,
                {
                    "response_mime_type": "application/json",
                    "temperature": temperature,
                    "max_output_tokens": max_tokens,
                },
            )
            return response.text or ""
        except Exception as e:
            raise self._wrap_error(e) from e

    async def _generate_with_document(self, prompt, base64_data, mime_type, *, system=None, max_tokens=4096) -> str:
        try:
            document = {"mime_type": mime_type, "data": base64.b64decode(base64_data)}
            response = await self._call_model(
                self.model,
                [document, prompt],
                system,
                {"response_mime_type": "application/json", "max_output_tokens": max_tokens},
            )
            return response.text or ""
        except Exception as e:
            raise self._wrap_error(e) from e

    async def generate_doodle(self, topic: str) -> str:
        try:
            model = genai.GenerativeModel(self.image_model)
            response = await asyncio.to_thread(model.generate_content, prompts.doodle_prompt(topic))
        except Exception as e:
            raise self._wrap_error(e) from e

        for candidate in response.candidates or []:
            for part in candidate.content.parts:
                inline = getattr(part, "inline_data", None)
                if inline is not None and inline.data:
                    data = inline.data
                    if isinstance(data, bytes):
                        data = base64.b64encode(data).decode("ascii")
                    return f"data:{inline.mime_type or 'image/png'};base64,{data}"
        return ""


class OpenAIAdapter(ProviderAdapter):
    """OpenAI chat completions in JSON mode."""

    provider = AIProvider.OPENAI
    document_array_hint = '\nWrap the array as {"nodes": [...]}.'

    def __init__(self, api_key: str, model: str, fast_model: str, max_text_length: int = 15000):
        super().__init__(model, fast_model, max_text_length)
        self.client = openai.AsyncOpenAI(api_key=api_key)
        logger.info("OpenAI adapter initialized (model: %s)", model)

    async def _complete(self, messages: List[Dict[str, Any]], model: str, temperature: float, max_tokens: int) -> str:
        try:
            response = await self.client.chat.completions.create(
                model=model,
                messages=messages,
                response_format={"type": "json_object"},
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except Exception as e:
            raise self._wrap_error(e) from e
        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise ProviderCallError(self.label, "No response from OpenAI")
        return content

    async def _generate_text(self, prompt, *, system=None, fast=False, temperature=0.7, max_tokens=4096) -> str:
        messages = [
            {"role": "system", "content": system or prompts.JSON_ONLY_SYSTEM},
            {"role": "user", "content": prompt},
        ]
        return await self._complete(messages, self.model_name(fast), temperature, max_tokens)

    async def _generate_with_document(self, prompt, base64_data, mime_type, *, system=None, max_tokens=4096) -> str:
        data_url = f"data:{mime_type};base64,{base64_data}"
        if mime_type == "application/pdf":
            attachment = {"type": "file", "file": {"filename": "document.pdf", "file_data": data_url}}
        else:
            attachment = {"type": "image_url", "image_url": {"url": data_url}}
        messages = [
            {"role": "system", "content": system or prompts.JSON_ONLY_SYSTEM},
            {
                "role": "user",
                "content": [attachment, {"type": "text", "text": prompt}],
            },
        ]
        return await self._complete(messages, self.model, 0.7, max_tokens)


class AnthropicAdapter(ProviderAdapter):
    """Anthropic Claude messages API."""

    provider = AIProvider.CLAUDE

    def __init__(self, api_key: str, model: str, fast_model: str, max_text_length: int = 15000):
        super().__init__(model, fast_model, max_text_length)
        self.client = anthropic.AsyncAnthropic(api_key=api_key)
        logger.info("Anthropic adapter initialized (model: %s)", model)

    async def _create(self, content: Any, model: str, system: Optional[str], temperature: float, max_tokens: int) -> str:
        try:
            response = await self.client.messages.create(
                model=model,
                max_tokens=max_tokens,
                temperature=temperature,
                system=system or prompts.JSON_ONLY_SYSTEM,
                messages=[{"role": "user", "content": content}],
            )
        except Exception as e:
            raise self._wrap_error(e) from e
        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )
        if not text:
            raise ProviderCallError(self.label, "Unexpected response type from Claude")
        return text

    async def _generate_text(self, prompt, *, system=None, fast=False, temperature=0.7, max_tokens=4096) -> str:
        return await self._create(prompt, self.model_name(fast), system, temperature, max_tokens)

    async def _generate_with_document(self, prompt, base64_data, mime_type, *, system=None, max_tokens=4096) -> str:
        media_type = "image/jpeg" if mime_type == "image/jpg" else mime_type
        block_type = "document" if media_type == "application/pdf" else "image"
        content = [
            {"type": block_type, "source": {"type": "base64", "media_type": media_type, "data": base64_data}},
            {"type": "text", "text": prompt},
        ]
        return await self._create(content, self.model, system, 0.7, max_tokens)


def build_adapters(settings: Settings) -> Dict[AIProvider, ProviderAdapter]:
    """Create an adapter for every provider whose API key is configured."""
    adapters: Dict[AIProvider, ProviderAdapter] = {}
    limit = settings.max_curriculum_text_length
    if settings.gemini_api_key:
        adapters[AIProvider.GEMINI] = GeminiAdapter(
            settings.gemini_api_key,
            settings.gemini_model,
            settings.gemini_fast_model,
            settings.gemini_image_model,
            limit,
        )
    if settings.openai_api_key:
        adapters[AIProvider.OPENAI] = OpenAIAdapter(
            settings.openai_api_key, settings.openai_model, settings.openai_fast_model, limit
        )
    if settings.anthropic_api_key:
        adapters[AIProvider.CLAUDE] = AnthropicAdapter(
            settings.anthropic_api_key, settings.anthropic_model, settings.anthropic_fast_model, limit
        )
    logger.info("Available AI providers: %s", [p.value for p in adapters])
    return adapters


class UnifiedAIService:
    """
    Routes every operation through the configured providers.

    The default order is Gemini, OpenAI, Claude. A configured preferred
    provider is tried first. Each provider is attempted once; the first
    success wins.
    """

    DEFAULT_ORDER = [AIProvider.GEMINI, AIProvider.OPENAI, AIProvider.CLAUDE]

    def __init__(
        self,
        settings: Optional[Settings] = None,
        adapters: Optional[Dict[AIProvider, ProviderAdapter]] = None,
    ):
        self.settings = settings or get_settings()
        self.adapters = adapters if adapters is not None else build_adapters(self.settings)

    def get_available_providers(self) -> List[AIProvider]:
        return [p for p in self.DEFAULT_ORDER if p in self.adapters]

    def get_default_provider(self) -> AIProvider:
        providers = self.get_available_providers()
        if not providers:
            raise ProviderNotConfiguredError(NO_DEFAULT_PROVIDER_MESSAGE)
        return providers[0]

    def provider_order(self, preferred: Optional[AIProvider] = None) -> List[AIProvider]:
        providers = self.get_available_providers()
        if preferred in providers:
            providers.remove(preferred)
            providers.insert(0, preferred)
        return providers

    async def _with_fallback(
        self,
        operation: str,
        call: Callable[[ProviderAdapter], Awaitable[T]],
        preferred: Optional[AIProvider] = None,
    ) -> Tuple[T, ProviderAdapter]:
        providers = self.provider_order(preferred)
        if not providers:
            raise ProviderNotConfiguredError(NO_PROVIDERS_MESSAGE)

        last_error: Optional[Exception] = None
        for provider in providers:
            adapter = self.adapters[provider]
            try:
                logger.info("Trying provider %s for %s", provider.value, operation)
                result = await call(adapter)
                logger.info("Provider %s succeeded for %s", provider.value, operation)
                return result, adapter
            except Exception as e:
                logger.warning("Provider %s failed for %s: %s", provider.value, operation, e)
                last_error = e

        raise AllProvidersFailedError(last_error)

    async def analyze_curriculum(
        self,
        text: str,
        grade: Optional[str] = None,
        framework: Optional[str] = None,
        preferred_provider: Optional[AIProvider] = None,
    ) -> List[CurriculumNode]:
        nodes, _ = await self._with_fallback(
            "curriculum analysis",
            lambda adapter: adapter.analyze_curriculum(text, grade, framework),
            preferred_provider,
        )
        return nodes

    async def analyze_document(
        self,
        base64_data: str,
        mime_type: str,
        grade: Optional[str] = None,
        framework: Optional[str] = None,
        preferred_provider: Optional[AIProvider] = None,
    ) -> List[CurriculumNode]:
        nodes, _ = await self._with_fallback(
            "document analysis",
            lambda adapter: adapter.analyze_document(base64_data, mime_type, grade, framework),
            preferred_provider,
        )
        return nodes

    async def generate_suite(
        self,
        node: CurriculumNode,
        output_type: OutputType,
        bloom_level: BloomLevel,
        differentiation: Differentiation,
        aesthetic: AestheticStyle,
        branding: Optional[Branding] = None,
        page_count: int = 1,
        grade: Optional[str] = None,
        standards: Optional[List[EducationalStandard]] = None,
        preferred_provider: Optional[AIProvider] = None,
        doodle_base64: Optional[str] = None,
        source_context: Optional[str] = None,
        style_guidance: Optional[str] = None,
    ) -> InstructionalSuite:
        request = SuiteRequest(
            output_type=output_type,
            bloom_level=bloom_level,
            differentiation=differentiation,
            aesthetic=aesthetic,
            branding=branding or Branding(),
            page_count=page_count,
            grade_level=grade,
            standards=standards,
            source_context=source_context,
            style_guidance=style_guidance,
        )
        suite, _ = await self._with_fallback(
            "suite generation",
            lambda adapter: adapter.generate_suite(node, request, doodle_base64),
            preferred_provider,
        )
        return suite

    async def analyze_inspiration(
        self,
        base64_data: str,
        mime_type: str,
        copy_layout: bool = True,
        copy_design: bool = True,
        preferred_provider: Optional[AIProvider] = None,
    ) -> Tuple[InspirationAnalysis, str]:
        """Layout and design cues from an example document, plus the model used."""
        analysis, adapter = await self._with_fallback(
            "inspiration analysis",
            lambda a: a.analyze_inspiration(base64_data, mime_type, copy_layout, copy_design),
            preferred_provider,
        )
        return analysis, adapter.model_name()

    async def generate_json_with_model(
        self,
        prompt: str,
        schema: Any,
        *,
        system: Optional[str] = None,
        preferred_provider: Optional[AIProvider] = None,
        fast: bool = False,
        temperature: float = 0.7,
        max_tokens: int = 4096,
        operation: str = "json generation",
    ) -> Tuple[Any, str]:
        """Like ``generate_json`` but also returns the model that answered."""
        result, adapter = await self._with_fallback(
            operation,
            lambda a: a.generate_json(
                prompt, schema, system=system, fast=fast, temperature=temperature, max_tokens=max_tokens
            ),
            preferred_provider,
        )
        return result, adapter.model_name(fast)

    async def generate_json(self, prompt: str, schema: Any, **kwargs) -> Any:
        result, _ = await self.generate_json_with_model(prompt, schema, **kwargs)
        return result

    async def generate_doodle(self, topic: str) -> Tuple[str, str]:
        """Line-art doodle as a data URL, plus the image model used. Gemini only."""
        adapter = self.adapters.get(AIProvider.GEMINI)
        if adapter is None:
            raise ProviderNotConfiguredError("GEMINI_API_KEY is not configured; doodles need Gemini")
        return await adapter.generate_doodle(topic), getattr(adapter, "image_model", adapter.model)


# Global service instance
_ai_service: Optional[UnifiedAIService] = None


def get_ai_service() -> UnifiedAIService:
    """Get the global AI service instance."""
    global _ai_service
    if _ai_service is None:
        _ai_service = UnifiedAIService()
    return _ai_service
