from __future__ import annotations

from dataclasses import dataclass, field

EASY = "Easy"
HARD = "Hard"
DIFFICULTIES = (EASY, HARD)

KNOWLEDGE_BASED = "Knowledge-Based"
SCENARIO_BASED = "Scenario-Based"
QUESTION_TYPES = (KNOWLEDGE_BASED, SCENARIO_BASED)


@dataclass
class KnowledgeTopic:
    topic: str
    content: str
    is_custom: bool = False

    def to_dict(self) -> dict:
        return {"topic": self.topic, "content": self.content, "isCustom": self.is_custom}

    @classmethod
    def from_dict(cls, data: dict) -> KnowledgeTopic:
        return cls(
            topic=data["topic"],
            content=data["content"],
            is_custom=bool(data.get("isCustom", False)),
        )


@dataclass(frozen=True)
class QuestionOption:
    text: str
    is_correct: bool

    def to_dict(self) -> dict:
        return {"text": self.text, "isCorrect": self.is_correct}

    @classmethod
    def from_dict(cls, data: dict) -> QuestionOption:
        return cls(text=data["text"], is_correct=bool(data.get("isCorrect", False)))


@dataclass(frozen=True)
class Question:
    id: int
    question_text: str
    options: tuple[QuestionOption, ...]
    difficulty: str

    @property
    def correct_option(self) -> QuestionOption | None:
        return next((o for o in self.options if o.is_correct), None)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "questionText": self.question_text,
            "options": [o.to_dict() for o in self.options],
            "difficulty": self.difficulty,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Question:
        return cls(
            id=data["id"],
            question_text=data["questionText"],
            options=tuple(QuestionOption.from_dict(o) for o in data["options"]),
            difficulty=data["difficulty"],
        )


@dataclass(frozen=True)
class QuizConfig:
    difficulty: str
    question_type: str
    topics: tuple[str, ...]

    def to_dict(self) -> dict:
        return {
            "difficulty": self.difficulty,
            "questionType": self.question_type,
            "topics": list(self.topics),
        }


def backfill_question_type(difficulty: str) -> str:
    """Question type for records saved before the field existed."""
    return KNOWLEDGE_BASED if difficulty == EASY else SCENARIO_BASED


@dataclass(frozen=True)
class QuizResult:
    id: int
    date: str
    score: int
    total_questions: int
    percentage: int
    questions: tuple[Question, ...]
    user_answers: tuple[str | None, ...]
    difficulty: str
    question_type: str
    topics: tuple[str, ...]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "date": self.date,
            "score": self.score,
            "totalQuestions": self.total_questions,
            "percentage": self.percentage,
            "questions": [q.to_dict() for q in self.questions],
            "userAnswers": list(self.user_answers),
            "difficulty": self.difficulty,
            "questionType": self.question_type,
            "topics": list(self.topics),
        }

    @classmethod
    def from_dict(cls, data: dict) -> QuizResult:
        # Records written before questionType existed get it back-filled
        question_type = data.get("questionType") or backfill_question_type(data["difficulty"])
        return cls(
            id=data["id"],
            date=data["date"],
            score=data["score"],
            total_questions=data["totalQuestions"],
            percentage=data["percentage"],
            questions=tuple(Question.from_dict(q) for q in data["questions"]),
            user_answers=tuple(data["userAnswers"]),
            difficulty=data["difficulty"],
            question_type=question_type,
            topics=tuple(data["topics"]),
        )


@dataclass(frozen=True)
class ExplanationState:
    loading: bool = False
    text: str | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        return {"loading": self.loading, "text": self.text, "error": self.error}


@dataclass(frozen=True)
class ScoreSummary:
    correct: int
    total: int
    percentage: int
    per_question: tuple[bool, ...] = field(default=())
