"""
Models / question.py
Rôle:
- Définir une question de quiz (4 réponses, une seule correcte), sa difficulté (1..5) et sa catégorie.
- Fournir la vue publique (sans le drapeau `is_correct`) envoyée pendant la phase de réponse.
"""
from pydantic import BaseModel, Field, field_validator
from typing import List, Literal, Optional

Category = Literal["history", "sport", "bible", "culture", "geography", "science", "other"]

ALL_CATEGORIES: List[str] = ["history", "sport", "bible", "culture", "geography", "science", "other"]


class AnswerOption(BaseModel):
    id: str
    text: str
    is_correct: bool = False


class Question(BaseModel):
    """Question consommée au plus une fois par partie."""
    id: str
    text: str
    answers: List[AnswerOption]
    difficulty: int = Field(ge=1, le=5)
    category: Category

    @field_validator("answers")
    @classmethod
    def _exactly_one_correct(cls, answers: List[AnswerOption]) -> List[AnswerOption]:
        if len(answers) != 4:
            raise ValueError("a question needs exactly 4 answers")
        if sum(1 for a in answers if a.is_correct) != 1:
            raise ValueError("a question needs exactly one correct answer")
        return answers

    def correct_answer_id(self) -> str:
        return next(a.id for a in self.answers if a.is_correct)


class PublicAnswer(BaseModel):
    id: str
    text: str
    is_correct: Optional[bool] = None


class QuestionView(BaseModel):
    """Vue présentation: `is_correct` n'est renseigné qu'une fois les résultats calculés."""
    id: str
    text: str
    difficulty: int
    category: str
    answers: List[PublicAnswer]
