"""
Pharmacoeconomic Request Workflow
Survey domain models.

Models:
    - Survey: questionnaire authored by an IT specialist.
    - SurveyQuestion: ordered question; choice types carry an options list.
    - SurveyResponse: one submission per (survey, user).
    - SurveyAnswer: answer string for one question within a response.
"""

import json
import logging

from app.models import db
from app.utils.helpers import isoformat, utcnow

logger = logging.getLogger(__name__)

QUESTION_TYPES = ("TEXT", "SINGLE_CHOICE", "MULTIPLE_CHOICE", "RATING", "YES_NO")
CHOICE_TYPES = frozenset({"SINGLE_CHOICE", "MULTIPLE_CHOICE"})


def normalize_options(raw) -> list[str] | None:
    """Read stored options as a string list.

    Older rows hold a JSON-encoded string; both shapes are accepted.
    """
    if raw is None or raw == "":
        return None
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            logger.warning("Unparseable survey options string ignored")
            return None
    if not isinstance(raw, (list, tuple)):
        return None
    return [str(o) for o in raw]


class Survey(db.Model):
    __tablename__ = "surveys"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_by_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
    )
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    created_by = db.relationship("User")
    questions = db.relationship(
        "SurveyQuestion", back_populates="survey", cascade="all, delete-orphan",
        order_by="SurveyQuestion.order",
    )
    responses = db.relationship(
        "SurveyResponse", back_populates="survey", cascade="all, delete-orphan",
        lazy="dynamic",
    )

    def to_dict(self, include_questions=True):
        d = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "isActive": self.is_active,
            "createdById": self.created_by_id,
            "createdAt": isoformat(self.created_at),
            "updatedAt": isoformat(self.updated_at),
            "responseCount": self.responses.count(),
        }
        if self.created_by is not None:
            d["createdBy"] = {"name": self.created_by.name, "email": self.created_by.email}
        if include_questions:
            d["questions"] = [q.to_dict() for q in self.questions]
        return d


class SurveyQuestion(db.Model):
    __tablename__ = "survey_questions"

    id = db.Column(db.Integer, primary_key=True)
    survey_id = db.Column(
        db.Integer, db.ForeignKey("surveys.id", ondelete="CASCADE"), nullable=False,
    )
    question = db.Column(db.Text, nullable=False)
    type = db.Column(db.String(30), nullable=False)
    options = db.Column(db.JSON)
    required = db.Column(db.Boolean, nullable=False, default=True)
    order = db.Column("sort_order", db.Integer, nullable=False, default=0)

    __table_args__ = (
        db.Index("ix_survey_questions_survey_order", "survey_id", "sort_order"),
    )

    survey = db.relationship("Survey", back_populates="questions")
    answers = db.relationship(
        "SurveyAnswer", back_populates="question", cascade="all, delete-orphan",
    )

    @property
    def option_list(self) -> list[str] | None:
        return normalize_options(self.options)

    def to_dict(self):
        return {
            "id": self.id,
            "surveyId": self.survey_id,
            "question": self.question,
            "type": self.type,
            "options": self.option_list,
            "required": self.required,
            "order": self.order,
        }


class SurveyResponse(db.Model):
    __tablename__ = "survey_responses"

    id = db.Column(db.Integer, primary_key=True)
    survey_id = db.Column(
        db.Integer, db.ForeignKey("surveys.id", ondelete="CASCADE"), nullable=False,
    )
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
    )
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        db.UniqueConstraint("survey_id", "user_id", name="uq_survey_response_user"),
    )

    survey = db.relationship("Survey", back_populates="responses")
    user = db.relationship("User")
    answers = db.relationship(
        "SurveyAnswer", back_populates="response", cascade="all, delete-orphan",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "surveyId": self.survey_id,
            "userId": self.user_id,
            "createdAt": isoformat(self.created_at),
            "answers": [a.to_dict() for a in self.answers],
        }


class SurveyAnswer(db.Model):
    __tablename__ = "survey_answers"

    id = db.Column(db.Integer, primary_key=True)
    response_id = db.Column(
        db.Integer, db.ForeignKey("survey_responses.id", ondelete="CASCADE"), nullable=False,
    )
    question_id = db.Column(
        db.Integer, db.ForeignKey("survey_questions.id", ondelete="CASCADE"), nullable=False,
    )
    answer = db.Column(db.Text, nullable=False)

    __table_args__ = (
        db.Index("ix_survey_answers_question_id", "question_id"),
    )

    response = db.relationship("SurveyResponse", back_populates="answers")
    question = db.relationship("SurveyQuestion", back_populates="answers")

    def to_dict(self):
        return {
            "id": self.id,
            "responseId": self.response_id,
            "questionId": self.question_id,
            "answer": self.answer,
        }
