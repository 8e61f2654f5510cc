import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Optional

import google.generativeai as genai
from anthropic import AsyncAnthropic
from openai import AsyncOpenAI

from practice_engine.config import settings
from practice_engine.errors import UpstreamUnavailable, ValidationError
from practice_engine.models import (
    Difficulty,
    DifficultyPrediction,
    DistractorCandidate,
    DistractorType,
)

from .ports import GenerationService

logger = logging.getLogger(__name__)


def extract_json(content: str) -> dict:
    """Parse the first ``{...}`` block out of a model reply."""
    content = content.strip()
    if content.startswith("```json"):
        content = content[7:-3].strip()
    elif content.startswith("```"):
        content = content[3:-3].strip()
    match = re.search(r"\{.*\}", content, re.DOTALL)
    if not match:
        raise ValueError("No JSON object in model output")
    return json.loads(match.group(0))


# --- Provider Interface ---
class LLMProvider(ABC):
    name = "llm"
    model_name: str = ""

    @abstractmethod
    async def generate_json(self, system_prompt: str, user_prompt: str, temperature: float = 0.7) -> dict:
        pass


# --- Concrete Providers ---
class OpenAIProvider(LLMProvider):
    name = "openai"

    def __init__(self, api_key: str, model: str | None = None):
        self.client = AsyncOpenAI(api_key=api_key)
        self.model = model or settings.openai_model
        self.model_name = self.model

    async def generate_json(self, system_prompt: str, user_prompt: str, temperature: float = 0.7) -> dict:
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt}
            ],
            response_format={"type": "json_object"},
            temperature=temperature,
            max_tokens=settings.generation_max_tokens,
        )
        return json.loads(response.choices[0].message.content)


class GeminiProvider(LLMProvider):
    name = "gemini"

    def __init__(self, api_key: str, model: str | None = None):
        genai.configure(api_key=api_key)
        self.model_name = model or settings.gemini_model
        self.model = genai.GenerativeModel(self.model_name)

    async def generate_json(self, system_prompt: str, user_prompt: str, temperature: float = 0.7) -> dict:
        full_prompt = f"{system_prompt}\n\nPlease output valid JSON only.\n\n{user_prompt}"
        response = await self.model.generate_content_async(
            full_prompt,
            generation_config=genai.types.GenerationConfig(
                temperature=temperature,
                max_output_tokens=settings.generation_max_tokens,
                response_mime_type="application/json",
            )
        )
        return extract_json(response.text)


class AnthropicProvider(LLMProvider):
    name = "anthropic"

    def __init__(self, api_key: str, model: str | None = None):
        self.client = AsyncAnthropic(api_key=api_key)
        self.model = model or settings.anthropic_model
        self.model_name = self.model

    async def generate_json(self, system_prompt: str, user_prompt: str, temperature: float = 0.7) -> dict:
        updated_system = f"{system_prompt}\nYou must output pure JSON."
        response = await self.client.messages.create(
            model=self.model,
            max_tokens=settings.generation_max_tokens,
            system=updated_system,
            messages=[{"role": "user", "content": user_prompt}],
            temperature=temperature
        )
        return extract_json(response.content[0].text)


def default_provider() -> Optional[LLMProvider]:
    """Prioritize: Gemini -> OpenAI -> Anthropic"""
    if settings.gemini_api_key:
        try:
            logger.info("Using Gemini Provider")
            return GeminiProvider(settings.gemini_api_key)
        except Exception as e:
            logger.warning(f"GeminiProvider Init failed: {e}")

    if settings.openai_api_key:
        logger.info("Using OpenAI Provider")
        return OpenAIProvider(settings.openai_api_key)

    if settings.anthropic_api_key:
        logger.info("Using Anthropic Provider")
        return AnthropicProvider(settings.anthropic_api_key)

    logger.warning("No AI Provider configured!")
    return None


DISTRACTOR_SYSTEM_PROMPT = (
    "You are an expert exam question setter. You write plausible but incorrect "
    "options for multiple-choice questions."
)

DISTRACTOR_PROMPT = """Generate 3 plausible but INCORRECT options (distractors) for this MCQ question.

QUESTION: {question_text}

CORRECT ANSWER: {correct_answer}

TOPIC: {topic}
DIFFICULTY: {difficulty}

REQUIREMENTS:
1. Each distractor must be FACTUALLY INCORRECT but conceptually related
2. Include common misconceptions and exam pattern mistakes
3. Use these distractor types:
   - partial_truth: Contains some correct elements but wrong overall
   - related_concept: From same topic but incorrect application
   - common_mistake: Based on typical student errors
   - factual_error: Wrong facts, dates, names, or numbers
4. For each distractor, explain why it's wrong in 2-3 sentences

Format:
{{
  "distractors": [
    {{"text": "...", "type": "partial_truth|related_concept|common_mistake|factual_error", "explanation": "..."}}
  ]
}}"""


# --- Main Service ---
class LLMDistractorGenerator(GenerationService):
    """Generation Service backed by whichever LLM provider is configured."""

    def __init__(self, provider: Optional[LLMProvider] = None):
        self.provider = provider if provider is not None else default_provider()

    @property
    def model_name(self) -> str | None:
        return self.provider.model_name if self.provider else None

    async def propose_distractors(
        self,
        question_text: str,
        correct_answer: str,
        topic: str | None = None,
        difficulty: str | None = None,
    ) -> list[DistractorCandidate]:
        if self.provider is None:
            raise UpstreamUnavailable("No AI provider configured")

        prompt = DISTRACTOR_PROMPT.format(
            question_text=question_text,
            correct_answer=correct_answer,
            topic=topic or "General",
            difficulty=difficulty or "medium",
        )
        try:
            data = await self.provider.generate_json(
                DISTRACTOR_SYSTEM_PROMPT, prompt, temperature=settings.generation_temperature
            )
        except Exception as e:
            logger.error(f"Distractor generation via {self.provider.name} failed: {e}")
            raise UpstreamUnavailable(f"Distractor generation failed: {e}") from e

        return self._parse(data)

    def _parse(self, data: dict) -> list[DistractorCandidate]:
        raw = data.get("distractors") if isinstance(data, dict) else None
        if not isinstance(raw, list):
            raise UpstreamUnavailable("Generation output has no distractor list")

        candidates = []
        for item in raw:
            if not isinstance(item, dict) or not isinstance(item.get("text"), str):
                logger.warning(f"Dropping malformed distractor entry: {item!r}")
                continue
            try:
                distractor_type = DistractorType(str(item.get("type", "")).strip().lower())
            except ValueError:
                distractor_type = DistractorType.RELATED_CONCEPT
            candidates.append(DistractorCandidate(
                text=item["text"],
                distractor_type=distractor_type,
                explanation=str(item.get("explanation") or ""),
            ))
        return candidates


PREDICTION_SYSTEM_PROMPT = """You are an exam difficulty analyzer. Analyze questions and predict their difficulty level.
Consider:
- Question complexity and depth required
- Cross-topic knowledge requirements
- Type of cognitive skills needed (recall vs analysis vs synthesis)
- Typical success rates for similar questions

Return JSON: {"difficulty": "easy|medium|hard", "confidence": 0.0-1.0, "factors": ["..."]}"""

PREDICTION_PROMPT = """Analyze the difficulty of this exam question:

"{question_text}"

Topic: {topic}
Cross-topic references: {cross_topic_refs}

Provide difficulty assessment in JSON format."""


class DifficultyPredictor:
    """Predicts question difficulty with the configured LLM provider.

    Any provider failure or unusable output falls back to ``medium``.
    """

    def __init__(self, provider: Optional[LLMProvider] = None):
        self.provider = provider if provider is not None else default_provider()

    async def predict_difficulty(
        self,
        question_text: str,
        topic: str | None = None,
        cross_topic_refs: list[str] | None = None,
    ) -> DifficultyPrediction:
        if not question_text or not question_text.strip():
            raise ValidationError("question_text is required")
        if self.provider is None:
            return DifficultyPrediction()

        prompt = PREDICTION_PROMPT.format(
            question_text=question_text.strip(),
            topic=topic or "General",
            cross_topic_refs=", ".join(cross_topic_refs or []) or "None",
        )
        try:
            data = await self.provider.generate_json(
                PREDICTION_SYSTEM_PROMPT, prompt, temperature=settings.prediction_temperature
            )
        except Exception as e:
            logger.error(f"Difficulty prediction via {self.provider.name} failed: {e}")
            return DifficultyPrediction()

        return self._parse(data)

    def _parse(self, data: dict) -> DifficultyPrediction:
        if not isinstance(data, dict):
            logger.warning(f"Unusable difficulty prediction: {data!r}")
            return DifficultyPrediction()
        try:
            difficulty = Difficulty(str(data.get("difficulty", "")).strip().lower())
        except ValueError:
            logger.warning(f"Unknown predicted difficulty: {data.get('difficulty')!r}")
            return DifficultyPrediction()

        try:
            confidence = min(1.0, max(0.0, float(data.get("confidence", 0.5))))
        except (TypeError, ValueError):
            confidence = 0.5
        factors = data.get("factors")
        return DifficultyPrediction(
            difficulty=difficulty,
            confidence=confidence,
            factors=[str(f) for f in factors] if isinstance(factors, list) else [],
            source="ai",
        )
