"""
Survey Service — authoring, answering and per-question result statistics.

Result statistics by question type:
  RATING           average of the numeric answers and a histogram keyed "1".."10"
  SINGLE_CHOICE    histogram keyed by the exact answer string
  YES_NO           same histogram plus yesPercentage ("Taip"/"Yes")
  MULTIPLE_CHOICE  each answer is comma-split, so selections may exceed responses
  TEXT             the raw answers with respondent name and time

A user answers a survey at most once. The service checks for an existing
response first; the (survey_id, user_id) unique constraint catches a
concurrent second submit.
"""

from __future__ import annotations

import logging
from collections import Counter

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from app.core.exceptions import (
    DuplicateError,
    ForbiddenError,
    InactiveError,
    NotFoundError,
    ValidationError,
)
from app.models import db
from app.models.auth import ROLE_IT_SPECIALIST
from app.models.survey import (
    CHOICE_TYPES,
    QUESTION_TYPES,
    Survey,
    SurveyAnswer,
    SurveyQuestion,
    SurveyResponse,
    normalize_options,
)
from app.utils.helpers import isoformat, parse_bool, round2

logger = logging.getLogger(__name__)

RATING_SCALE = range(1, 11)
YES_VALUES = frozenset({"taip", "yes"})


def get_survey(survey_id) -> Survey:
    try:
        survey = db.session.get(Survey, int(survey_id))
    except (TypeError, ValueError):
        survey = None
    if survey is None:
        raise NotFoundError("Survey", survey_id)
    return survey


def _owned_survey(survey_id, user_id: int) -> Survey:
    survey = get_survey(survey_id)
    if survey.created_by_id != user_id:
        raise ForbiddenError("Only the author can change this survey")
    return survey


# ── Authoring ─────────────────────────────────────────────────────────────────


def _build_question(index: int, raw) -> SurveyQuestion:
    if not isinstance(raw, dict):
        raise ValidationError("Each question must be an object", details={f"questions[{index}]": "invalid"})
    text = (raw.get("question") or "").strip()
    if not text:
        raise ValidationError("Question text is required", details={f"questions[{index}].question": "required"})
    qtype = raw.get("type")
    if qtype not in QUESTION_TYPES:
        raise ValidationError(
            f"Question type must be one of: {', '.join(QUESTION_TYPES)}",
            details={f"questions[{index}].type": "invalid"},
        )
    options = normalize_options(raw.get("options"))
    if options is not None:
        options = [o.strip() for o in options if o.strip()]
    if qtype in CHOICE_TYPES and not options:
        raise ValidationError(
            "Choice questions need at least one option",
            details={f"questions[{index}].options": "required"},
        )
    return SurveyQuestion(
        question=text,
        type=qtype,
        options=options or None,
        required=parse_bool(raw.get("required"), f"questions[{index}].required", default=False),
        order=index,
    )


def create_survey(creator_id: int, role: str, title, description, questions) -> Survey:
    """Create a survey with its ordered questions in one transaction.

    Raises:
        ForbiddenError: Caller is not an IT specialist.
        ValidationError: Title missing, no questions, or a malformed question.
    """
    if role != ROLE_IT_SPECIALIST:
        raise ForbiddenError("Only IT specialists can create surveys")
    title = (title or "").strip()
    if not title:
        raise ValidationError("Title is required", details={"title": "required"})
    if not isinstance(questions, list) or not questions:
        raise ValidationError("At least one question is required", details={"questions": "required"})

    survey = Survey(
        title=title,
        description=(description or "").strip() or None,
        created_by_id=creator_id,
        is_active=True,
    )
    survey.questions = [_build_question(i, q) for i, q in enumerate(questions)]
    db.session.add(survey)
    db.session.commit()
    logger.info("Survey %s created with %d questions by user %s",
                survey.id, len(survey.questions), creator_id)
    return survey


def list_surveys(user_id: int, role: str) -> list[Survey]:
    """Authors see every survey; everyone else sees active ones still to answer."""
    stmt = select(Survey).order_by(Survey.created_at.desc(), Survey.id.desc())
    if role != ROLE_IT_SPECIALIST:
        answered = select(SurveyResponse.survey_id).where(SurveyResponse.user_id == user_id)
        stmt = stmt.where(Survey.is_active.is_(True), Survey.id.not_in(answered))
    return list(db.session.execute(stmt).scalars())


def delete_survey(survey_id, user_id: int) -> None:
    survey = _owned_survey(survey_id, user_id)
    db.session.delete(survey)
    db.session.commit()
    logger.info("Survey %s deleted by user %s", survey.id, user_id)


def set_active(survey_id, user_id: int, is_active) -> Survey:
    if not isinstance(is_active, bool):
        raise ValidationError("isActive must be true or false", details={"isActive": "invalid"})
    survey = _owned_survey(survey_id, user_id)
    survey.is_active = is_active
    db.session.commit()
    return survey


# ── Responses ─────────────────────────────────────────────────────────────────


def _answer_text(value) -> str:
    if isinstance(value, (list, tuple)):
        return ",".join(str(v).strip() for v in value if str(v).strip())
    if isinstance(value, bool):
        return "Taip" if value else "Ne"
    return str(value).strip()


def _is_rating(text: str) -> bool:
    try:
        value = float(text)
    except ValueError:
        return False
    return RATING_SCALE.start <= value <= RATING_SCALE.stop - 1


def submit_response(survey_id, user_id: int, answers) -> SurveyResponse:
    """Store one user's answers to a survey.

    Raises:
        ValidationError: No answers, an answer for a foreign question, a
            rating outside 1..10, or a required question left unanswered.
        NotFoundError: Unknown survey.
        InactiveError: The survey is switched off.
        DuplicateError: The user has already answered this survey.
    """
    if not isinstance(answers, list) or not answers:
        raise ValidationError("Answers are required", details={"answers": "required"})
    survey = get_survey(survey_id)
    if not survey.is_active:
        raise InactiveError("This survey is no longer active")

    existing = db.session.execute(
        select(SurveyResponse.id).where(
            SurveyResponse.survey_id == survey.id, SurveyResponse.user_id == user_id,
        )
    ).first()
    if existing is not None:
        raise DuplicateError("You have already answered this survey")

    questions = {q.id: q for q in survey.questions}
    rows: dict[int, SurveyAnswer] = {}
    for raw in answers:
        if not isinstance(raw, dict):
            raise ValidationError("Each answer must be an object", details={"answers": "invalid"})
        try:
            question_id = int(raw.get("questionId"))
        except (TypeError, ValueError):
            question_id = None
        if question_id not in questions:
            raise ValidationError(
                "Answer references a question outside this survey",
                details={"questionId": raw.get("questionId")},
            )
        value = raw.get("answer")
        text = "" if value is None else _answer_text(value)
        if not text:
            continue
        if questions[question_id].type == "RATING" and not _is_rating(text):
            raise ValidationError(
                "Rating answers must be a number from 1 to 10",
                details={"questionId": question_id},
            )
        rows[question_id] = SurveyAnswer(question_id=question_id, answer=text)

    missing = [q.id for q in survey.questions if q.required and q.id not in rows]
    if missing:
        raise ValidationError("Required questions are unanswered", details={"questionIds": missing})

    response = SurveyResponse(survey_id=survey.id, user_id=user_id, answers=list(rows.values()))
    db.session.add(response)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise DuplicateError("You have already answered this survey")
    logger.info("Survey %s answered by user %s", survey.id, user_id)
    return response


# ── Results ───────────────────────────────────────────────────────────────────


def _rating_stats(answers: list[SurveyAnswer]) -> dict:
    values = []
    for a in answers:
        try:
            values.append(float(a.answer))
        except ValueError:
            logger.warning("Non-numeric rating answer %s ignored", a.id)
    histogram = {str(i): sum(1 for v in values if v == i) for i in RATING_SCALE}
    return {
        "average": round2(sum(values) / len(values)) if values else 0,
        "distribution": histogram,
    }


def _choice_stats(question: SurveyQuestion, answers: list[SurveyAnswer]) -> dict:
    counts: Counter = Counter()
    if question.type == "MULTIPLE_CHOICE":
        for a in answers:
            counts.update(part.strip() for part in a.answer.split(",") if part.strip())
    else:
        counts.update(a.answer for a in answers)
    stats = {"distribution": dict(counts)}
    if question.type == "YES_NO":
        yes = sum(n for value, n in counts.items() if value.strip().lower() in YES_VALUES)
        stats["yesPercentage"] = round2(100 * yes / len(answers)) if answers else 0
    return stats


def _text_stats(answers: list[SurveyAnswer]) -> dict:
    return {
        "responses": [
            {
                "answer": a.answer,
                "user": a.response.user.name if a.response.user else None,
                "createdAt": isoformat(a.response.created_at),
            }
            for a in sorted(answers, key=lambda a: (a.response.created_at, a.id))
        ]
    }


def question_stats(question: SurveyQuestion) -> dict:
    answers = list(question.answers)
    stats = {"totalResponses": len(answers)}
    if question.type == "RATING":
        stats.update(_rating_stats(answers))
    elif question.type in ("SINGLE_CHOICE", "MULTIPLE_CHOICE", "YES_NO"):
        stats.update(_choice_stats(question, answers))
    elif question.type == "TEXT":
        stats.update(_text_stats(answers))
    return stats


def compute_results(survey_id) -> dict:
    """Per-question statistics, recomputed from the stored answers."""
    survey = get_survey(survey_id)
    return {
        "survey": {
            "id": survey.id,
            "title": survey.title,
            "description": survey.description,
            "createdAt": isoformat(survey.created_at),
            "responseCount": survey.responses.count(),
            "questionCount": len(survey.questions),
        },
        "questions": [
            {
                "id": q.id,
                "question": q.question,
                "type": q.type,
                "options": q.option_list,
                "stats": question_stats(q),
            }
            for q in survey.questions
        ],
    }


# ── Maintenance ───────────────────────────────────────────────────────────────


def migrate_multiple_choice() -> int:
    """Retype MULTIPLE_CHOICE questions that never received a multi-select.

    A question qualifies when none of its answers contains a comma, which
    includes questions with no answers. Returns the number converted.
    """
    questions = db.session.execute(
        select(SurveyQuestion).where(SurveyQuestion.type == "MULTIPLE_CHOICE")
    ).scalars()
    converted = 0
    for question in questions:
        if any("," in a.answer for a in question.answers):
            continue
        question.type = "SINGLE_CHOICE"
        converted += 1
        logger.info("Question %s converted to SINGLE_CHOICE", question.id)
    db.session.commit()
    return converted
