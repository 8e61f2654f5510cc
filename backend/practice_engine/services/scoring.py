"""Scoring of completed practice sessions."""

from dataclasses import dataclass, field

from practice_engine.models import (
    DIFFICULTY_ORDER,
    Difficulty,
    QuestionResult,
    QuestionSource,
    TopicStats,
)


@dataclass
class ScoringItem:
    """A frozen session question joined with its server-side answer key.

    For MCQs ``correct_answer`` is the letter in the session's shuffled
    letter space, i.e. the letter the learner saw.
    """

    index: int
    question_id: str
    source: QuestionSource
    correct_answer: str
    is_mcq: bool = True
    question_text: str | None = None
    topic: str | None = None
    difficulty: Difficulty = Difficulty.MEDIUM
    explanation: str = ""


@dataclass
class MarkingPolicy:
    """Exam-mode marking. The default awards one mark per correct answer and nothing else."""

    negative_mark_per_wrong: float = 0.0
    unanswered_penalty: float = 0.0


@dataclass
class ScoreReport:
    correct_count: int
    total: int
    accuracy: float
    net_score: float
    results: list[QuestionResult]
    topic_performance: dict[str, TopicStats] = field(default_factory=dict)
    difficulty_breakdown: dict[str, TopicStats] = field(default_factory=dict)
    weak_topics: list[str] = field(default_factory=list)
    strong_topics: list[str] = field(default_factory=list)


def answers_match(user_answer: str, correct_answer: str) -> bool:
    """Compare answers ignoring case and surrounding whitespace."""
    return user_answer.strip().lower() == correct_answer.strip().lower()


class ScoringAggregator:
    """Computes correctness and topic/difficulty breakdowns for a session."""

    def __init__(
        self,
        weak_threshold: float = 0.5,
        strong_threshold: float = 0.7,
        min_topic_attempts: int = 2,
        policy: MarkingPolicy | None = None,
    ):
        self.weak_threshold = weak_threshold
        self.strong_threshold = strong_threshold
        self.min_topic_attempts = min_topic_attempts
        self.policy = policy or MarkingPolicy()

    def classify_topics(self, topic_performance: dict[str, TopicStats]) -> tuple[list[str], list[str]]:
        """Split topics into (weak, strong).

        Topics with fewer than ``min_topic_attempts`` questions are left out
        of both lists.
        """
        weak = []
        strong = []
        for topic, stats in topic_performance.items():
            if stats.attempted < self.min_topic_attempts:
                continue
            if stats.accuracy < self.weak_threshold:
                weak.append(topic)
            elif stats.accuracy >= self.strong_threshold:
                strong.append(topic)
        return weak, strong

    def score(
        self,
        items: list[ScoringItem],
        answers: dict[int, str],
        question_times: dict[int, float] | None = None,
    ) -> ScoreReport:
        question_times = question_times or {}
        results = []
        correct = 0
        wrong = 0
        unanswered = 0
        topic_performance: dict[str, TopicStats] = {}
        difficulty_breakdown = {d.value: TopicStats() for d in DIFFICULTY_ORDER}

        for item in items:
            user_answer = answers.get(item.index)
            answered = bool(user_answer and user_answer.strip())
            is_correct = answered and answers_match(user_answer, item.correct_answer)

            if is_correct:
                correct += 1
            elif answered:
                wrong += 1
            else:
                unanswered += 1

            if item.topic:
                stats = topic_performance.setdefault(item.topic, TopicStats())
                stats.attempted += 1
                stats.correct += int(is_correct)

            level = difficulty_breakdown.setdefault(item.difficulty.value, TopicStats())
            level.attempted += 1
            level.correct += int(is_correct)

            results.append(QuestionResult(
                index=item.index,
                question_id=item.question_id,
                source=item.source,
                question_text=item.question_text,
                topic=item.topic,
                difficulty=item.difficulty,
                user_answer=user_answer if answered else None,
                correct_answer=item.correct_answer,
                is_correct=is_correct,
                answered=answered,
                explanation=item.explanation,
                time_taken=question_times.get(item.index, 0),
            ))

        total = len(items)
        accuracy = round(correct / total * 100, 2) if total > 0 else 0.0
        net_score = (
            correct
            - wrong * self.policy.negative_mark_per_wrong
            - unanswered * self.policy.unanswered_penalty
        )
        weak, strong = self.classify_topics(topic_performance)

        return ScoreReport(
            correct_count=correct,
            total=total,
            accuracy=accuracy,
            net_score=round(net_score, 2),
            results=results,
            topic_performance=topic_performance,
            difficulty_breakdown=difficulty_breakdown,
            weak_topics=weak,
            strong_topics=strong,
        )
