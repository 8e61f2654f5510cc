"""
Unit tests for the LLM-backed Generation Service.

Providers are replaced with in-process fakes; no network calls are made.
"""

import pytest

from practice_engine.errors import UpstreamUnavailable, ValidationError
from practice_engine.models import Difficulty, DistractorType
from practice_engine.services.llm_generator import (
    DifficultyPredictor,
    LLMDistractorGenerator,
    LLMProvider,
    extract_json,
)


class FakeProvider(LLMProvider):
    name = "fake"
    model_name = "fake-model"

    def __init__(self, reply=None, error=None):
        self.reply = reply
        self.error = error
        self.prompts = []

    async def generate_json(self, system_prompt, user_prompt, temperature=0.7):
        self.prompts.append(user_prompt)
        if self.error:
            raise self.error
        return self.reply


@pytest.mark.asyncio
async def test_parses_distractors():
    provider = FakeProvider({"distractors": [
        {"text": "Article 226", "type": "related_concept", "explanation": "High Courts."},
        {"text": "Article 21", "type": "COMMON_MISTAKE", "explanation": "Right to life."},
        {"text": "Article 19", "type": "made_up_type"},
    ]})

    candidates = await LLMDistractorGenerator(provider).propose_distractors(
        "Which Article?", "Article 32", topic="Polity", difficulty="hard"
    )

    assert [c.text for c in candidates] == ["Article 226", "Article 21", "Article 19"]
    assert candidates[1].distractor_type == DistractorType.COMMON_MISTAKE
    assert candidates[2].distractor_type == DistractorType.RELATED_CONCEPT
    assert candidates[2].explanation == ""
    assert "TOPIC: Polity" in provider.prompts[0]
    assert "DIFFICULTY: hard" in provider.prompts[0]


@pytest.mark.asyncio
async def test_malformed_entries_dropped():
    provider = FakeProvider({"distractors": ["just text", {"type": "factual_error"}, {"text": "Article 14"}]})

    candidates = await LLMDistractorGenerator(provider).propose_distractors("Q?", "A")

    assert [c.text for c in candidates] == ["Article 14"]


@pytest.mark.asyncio
async def test_missing_distractor_list():
    generator = LLMDistractorGenerator(FakeProvider({"options": []}))
    with pytest.raises(UpstreamUnavailable):
        await generator.propose_distractors("Q?", "A")


@pytest.mark.asyncio
async def test_provider_error_is_upstream_unavailable():
    generator = LLMDistractorGenerator(FakeProvider(error=RuntimeError("rate limited")))
    with pytest.raises(UpstreamUnavailable):
        await generator.propose_distractors("Q?", "A")


@pytest.mark.asyncio
async def test_no_provider_configured():
    generator = LLMDistractorGenerator(FakeProvider())
    generator.provider = None
    with pytest.raises(UpstreamUnavailable):
        await generator.propose_distractors("Q?", "A")
    assert generator.model_name is None


def test_extract_json_from_fenced_reply():
    assert extract_json('```json\n{"distractors": []}\n```') == {"distractors": []}


def test_extract_json_from_chatty_reply():
    assert extract_json('Here you go: {"distractors": [{"text": "x"}]} Thanks!') == {
        "distractors": [{"text": "x"}]
    }


def test_extract_json_without_object():
    with pytest.raises(ValueError):
        extract_json("no json here")


class TestDifficultyPredictor:
    @pytest.mark.asyncio
    async def test_prediction_from_provider(self):
        provider = FakeProvider({
            "difficulty": "Hard",
            "confidence": 0.82,
            "factors": ["needs analysis", "cross-topic"],
        })

        prediction = await DifficultyPredictor(provider).predict_difficulty(
            "Evaluate federalism in India.", topic="Polity", cross_topic_refs=["History", "Economy"]
        )

        assert prediction.difficulty == Difficulty.HARD
        assert prediction.confidence == pytest.approx(0.82)
        assert prediction.factors == ["needs analysis", "cross-topic"]
        assert prediction.source == "ai"
        assert "Cross-topic references: History, Economy" in provider.prompts[0]

    @pytest.mark.asyncio
    async def test_provider_error_falls_back_to_medium(self):
        provider = FakeProvider(error=RuntimeError("rate limited"))

        prediction = await DifficultyPredictor(provider).predict_difficulty("Q?")

        assert prediction.difficulty == Difficulty.MEDIUM
        assert prediction.confidence == 0.5
        assert prediction.source == "default"

    @pytest.mark.asyncio
    async def test_unknown_difficulty_falls_back_to_medium(self):
        prediction = await DifficultyPredictor(FakeProvider({"difficulty": "brutal"})).predict_difficulty("Q?")
        assert prediction.difficulty == Difficulty.MEDIUM
        assert prediction.source == "default"

    @pytest.mark.asyncio
    async def test_confidence_clamped_and_factors_optional(self):
        provider = FakeProvider({"difficulty": "easy", "confidence": 3})

        prediction = await DifficultyPredictor(provider).predict_difficulty("Q?")

        assert prediction.difficulty == Difficulty.EASY
        assert prediction.confidence == 1.0
        assert prediction.factors == []

    @pytest.mark.asyncio
    async def test_no_provider_configured(self):
        predictor = DifficultyPredictor(FakeProvider())
        predictor.provider = None

        prediction = await predictor.predict_difficulty("Q?")

        assert prediction.difficulty == Difficulty.MEDIUM

    @pytest.mark.asyncio
    async def test_question_text_required(self):
        provider = FakeProvider({"difficulty": "easy"})
        with pytest.raises(ValidationError):
            await DifficultyPredictor(provider).predict_difficulty("   ")
        assert provider.prompts == []
