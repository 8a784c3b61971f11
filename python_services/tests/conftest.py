import json
import sys
from pathlib import Path
from typing import Any, List, Optional, Sequence, Tuple, Union

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from shared.config import Settings  # noqa: E402
from shared.llm_client import ProviderAdapter, UnifiedAIService  # noqa: E402
from shared.models import AIProvider, CurriculumNode  # noqa: E402

Scripted = Union[str, Exception, Sequence[Union[str, Exception]]]

# Distinctive phrases of each prompt template
NODES = "decompose it into a logical sequence"
GAPS = "identify gaps"
PREREQUISITES = "prerequisite knowledge"
LEARNING_PATH = "optimal learning path"
ASSESSMENTS = "Recommend assessment strategies"
DIFFERENTIATION = "Provide differentiation strategies"
STANDARDS = "educational standards alignment"
COMPLEXITY = "complexity and difficulty progression"
SUITE = "Act as a world-class Instructional Designer"
RUBRIC = "grading rubric"
PREVIEW = "quick preview"
SUMMARY = "Summarize the following curriculum text"
AUDIT = "Audit the following"
INSPIRATION = "Analyze this educational material"


def as_json(value: Any) -> str:
    return json.dumps(value)


class _FakeAdapter(ProviderAdapter):
    """Adapter answering from scripted responses keyed by a prompt phrase."""

    def __init__(
        self,
        provider: AIProvider = AIProvider.GEMINI,
        routes: Optional[List[Tuple[str, Scripted]]] = None,
        model: str = "fake-model",
        fail_with: Optional[Exception] = None,
        doodle: Optional[str] = None,
    ):
        super().__init__(model, fast_model=f"{model}-fast")
        self.provider = provider
        self.fail_with = fail_with
        self.doodle = doodle
        self.image_model = f"{model}-image"
        self._routes = [(key, list(value) if isinstance(value, (list, tuple)) else [value]) for key, value in routes or []]
        self.prompts: List[str] = []
        self.documents: List[Tuple[str, str]] = []

    def _answer(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.fail_with is not None:
            raise self.fail_with
        for key, queue in self._routes:
            if key in prompt:
                response = queue.pop(0) if len(queue) > 1 else queue[0]
                if isinstance(response, Exception):
                    raise response
                return response
        raise RuntimeError(f"no scripted response for prompt: {prompt[:60]!r}")

    async def _generate_text(self, prompt, *, system=None, fast=False, temperature=0.7, max_tokens=4096):
        return self._answer(prompt)

    async def _generate_with_document(self, prompt, base64_data, mime_type, *, system=None, max_tokens=4096):
        self.documents.append((base64_data, mime_type))
        return self._answer(prompt)

    async def generate_doodle(self, topic: str) -> str:
        if self.doodle is None:
            return await super().generate_doodle(topic)
        return self.doodle

    def calls(self, key: str) -> int:
        return sum(1 for p in self.prompts if key in p)


@pytest.fixture
def settings():
    return Settings(
        GEMINI_API_KEY=None,
        OPENAI_API_KEY=None,
        ANTHROPIC_API_KEY=None,
        SUPABASE_URL=None,
        SUPABASE_KEY=None,
        GAMMA_API_KEY="gamma-test-key",
        DEBUG=False,
    )


@pytest.fixture
def make_service(settings):
    def _make(*adapters: _FakeAdapter) -> UnifiedAIService:
        return UnifiedAIService(settings=settings, adapters={a.provider: a for a in adapters})

    return _make


@pytest.fixture
def node():
    return CurriculumNode(
        id="node-1",
        title="Fractions on a Number Line",
        description="Place unit fractions on a number line.",
        learning_objectives=["Locate 1/2 and 1/4 on a number line"],
        suggested_duration="45 minutes",
    )


NODES_JSON = as_json(
    [
        {
            "id": "node-1",
            "title": "Fractions on a Number Line",
            "description": "Place unit fractions on a number line.",
            "learningObjectives": ["Locate 1/2 and 1/4"],
            "suggestedDuration": "45 minutes",
        },
        {
            "title": "Comparing Fractions",
            "description": "Compare fractions with like denominators.",
            "learningObjectives": ["Use < and > with fractions"],
        },
    ]
)

SUITE_JSON = as_json(
    {
        "title": "Fractions Worksheet",
        "doodlePrompt": "a number line",
        "sections": [
            {"id": "s1", "type": "text", "title": "Warm Up", "content": "Fractions name parts of a whole."},
            {
                "id": "s2",
                "type": "question",
                "title": "Pick One",
                "content": "Which fraction is larger?",
                "options": ["1/4", "1/2", "1/8"],
                "correctAnswer": 1,
                "explanation": "Halves are bigger than quarters.",
            },
            {
                "id": "s3",
                "type": "question",
                "title": "Explain",
                "content": "Why is 1/2 > 1/3?",
                "correctAnswer": "Fewer equal parts means bigger parts.",
            },
            {
                "id": "s4",
                "type": "matching",
                "title": "Match",
                "content": "one half\none quarter",
                "options": ["1/4", "1/2"],
                "correctAnswer": [1, 0],
            },
            {"id": "s5", "type": "diagram_placeholder", "title": "Draw", "content": "Draw a number line."},
        ],
    }
)

RUBRIC_JSON = as_json(
    {
        "criteria": [
            {
                "criterion": "Accuracy",
                "excellent": "All correct",
                "good": "Mostly correct",
                "satisfactory": "Some correct",
                "needsImprovement": "Few correct",
            }
        ],
        "scale": "4-point scale",
    }
)
