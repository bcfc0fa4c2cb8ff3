"""FastAPI server that exposes teacher and student endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Request, Response
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, Field
import uvicorn

from quizhub.constants.about import APP_ABOUT_TEXT, APP_LICENSE, APP_NAME, APP_VERSION
from quizhub.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from quizhub.constants.quiz_constants import DEFAULT_CATEGORY, MIN_GENERATED_QUESTIONS
from quizhub.core.errors import (
    AttemptLimitExceeded,
    GenerationFailed,
    NotFound,
    NotYetOpen,
    PermissionDenied,
    QuizHubError,
    ValidationFailed,
    WindowClosed,
)
from quizhub.core.markdown_math_renderer import renderer
from quizhub.core.models import (
    Question,
    QuestionOption,
    QuestionType,
    QuizAttempt,
    QuizSettings,
    User,
    UserRole,
)
from quizhub.core.quiz_manager import QuizManager
from quizhub.core.services.attempt_engine import AttemptSession

USER_COOKIE = "quizhub_user_id"
USER_HEADER = "X-User-Id"

_STATUS_BY_ERROR: dict[type[QuizHubError], int] = {
    NotFound: 404,
    PermissionDenied: 403,
    AttemptLimitExceeded: 409,
    NotYetOpen: 409,
    WindowClosed: 409,
    ValidationFailed: 422,
    GenerationFailed: 502,
}


class LoginPayload(BaseModel):
    email: str
    role: UserRole
    name: str = ""


class SettingsPayload(BaseModel):
    time_limit_minutes: int = Field(gt=0)
    attempt_limit: int = Field(default=1, ge=1)
    randomize_questions: bool = False
    is_public: bool = True
    scheduled_at: str | None = None
    expires_at: str | None = None

    def to_settings(self) -> QuizSettings:
        return QuizSettings(**self.model_dump())


class OptionPayload(BaseModel):
    id: str
    text: str


class QuestionPayload(BaseModel):
    """Schema for authoring a question."""

    id: str | None = None
    text: str
    type: QuestionType = QuestionType.MCQ
    options: list[OptionPayload]
    correct_answer_ids: list[str]
    points: int = 1
    category: str = DEFAULT_CATEGORY
    explanation: str | None = None

    def to_question(self, quiz_id: str) -> Question:
        return Question(
            id=self.id or "",
            quiz_id=quiz_id,
            text=self.text,
            type=self.type,
            options=[QuestionOption(id=o.id, text=o.text) for o in self.options],
            correct_answer_ids=list(self.correct_answer_ids),
            points=self.points,
            category=self.category,
            explanation=self.explanation,
        )


class CreateQuizPayload(BaseModel):
    title: str
    description: str = ""
    settings: SettingsPayload
    questions: list[QuestionPayload] = Field(default_factory=list)
    add_to_bank: bool = False


class UpdateQuizPayload(BaseModel):
    title: str | None = None
    description: str | None = None
    settings: SettingsPayload | None = None
    question_ids: list[str] | None = None


class SaveQuestionPayload(QuestionPayload):
    add_to_bank: bool = False


class ImportPayload(BaseModel):
    text: str
    add_to_bank: bool = False


class GeneratePayload(BaseModel):
    topic: str
    count: int = MIN_GENERATED_QUESTIONS


class CopyFromBankPayload(BaseModel):
    quiz_id: str


class AnswerPayload(BaseModel):
    """Payload schema for a single option click."""

    question_id: str
    option_id: str


class ProgressPayload(BaseModel):
    answers: dict[str, list[str]] | None = None
    last_question_idx: int | None = None
    time_left_seconds: int | None = None


def _get_quiz_manager_dependency(quiz_manager: QuizManager):
    def dependency() -> QuizManager:
        return quiz_manager

    return dependency


def _question_payload(question: Question, reveal_answers: bool) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": question.id,
        "quiz_id": question.quiz_id,
        "text": question.text,
        "text_html": renderer.render_fragment(question.text),
        "type": question.type.value,
        "options": [{"id": option.id, "text": option.text} for option in question.options],
        "points": question.points,
        "category": question.category,
    }
    if reveal_answers:
        payload["correct_answer_ids"] = list(question.correct_answer_ids)
        payload["explanation"] = question.explanation
        payload["explanation_html"] = renderer.render_fragment(question.explanation)
    return payload


def _session_payload(session: AttemptSession) -> dict[str, Any]:
    return {
        "attempt": session.attempt.to_record(),
        "quiz": session.quiz.to_record(),
        "questions": [
            _question_payload(question, reveal_answers=session.attempt.is_completed)
            for question in session.questions
        ],
        "time_left_seconds": session.time_left_seconds,
        "resumed": session.resumed,
    }


def create_api_app(quiz_manager: QuizManager) -> FastAPI:
    """Create a FastAPI application wired to the provided quiz manager."""
    app = FastAPI(title=f"{APP_NAME} API", version=APP_VERSION, description=APP_ABOUT_TEXT)
    quiz_manager_dep = _get_quiz_manager_dependency(quiz_manager)

    @app.exception_handler(QuizHubError)
    async def handle_domain_error(request: Request, exc: QuizHubError) -> JSONResponse:
        status_code = next(
            (code for error_type, code in _STATUS_BY_ERROR.items() if isinstance(exc, error_type)),
            400,
        )
        return JSONResponse(
            status_code=status_code,
            content={"detail": str(exc), "error": type(exc).__name__},
        )

    def current_user(request: Request, manager: QuizManager = Depends(quiz_manager_dep)) -> User:
        user_id = request.headers.get(USER_HEADER) or request.cookies.get(USER_COOKIE)
        if not user_id:
            raise HTTPException(status_code=401, detail="Log in first.")
        try:
            return manager.get_user(user_id)
        except NotFound as exc:
            raise HTTPException(status_code=401, detail="Unknown user.") from exc

    def current_teacher(user: User = Depends(current_user)) -> User:
        if user.role is not UserRole.TEACHER:
            raise HTTPException(status_code=403, detail="Teacher account required.")
        return user

    def current_student(user: User = Depends(current_user)) -> User:
        if user.role is not UserRole.STUDENT:
            raise HTTPException(status_code=403, detail="Student account required.")
        return user

    @app.get("/")
    def about() -> dict[str, object]:
        return {"name": APP_NAME, "version": APP_VERSION, "license": APP_LICENSE, "about": APP_ABOUT_TEXT}

    # --- Identity ---

    @app.post("/login")
    def login(
        payload: LoginPayload,
        response: Response,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        user = manager.login(payload.email, payload.role, payload.name)
        response.set_cookie(
            key=USER_COOKIE,
            value=user.id,
            max_age=60 * 60 * 24 * 30,
            samesite="lax",
            httponly=True,
        )
        return user.to_record()

    @app.get("/me")
    def me(user: User = Depends(current_user)) -> dict[str, object]:
        return user.to_record()

    # --- Quizzes ---

    @app.post("/quizzes", status_code=201)
    def create_quiz(
        payload: CreateQuizPayload,
        teacher: User = Depends(current_teacher),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        quiz = manager.create_quiz(
            teacher.id,
            payload.title,
            payload.description,
            payload.settings.to_settings(),
            questions=[q.to_question("") for q in payload.questions],
            add_to_bank=payload.add_to_bank,
        )
        return quiz.to_record()

    @app.get("/quizzes")
    def list_my_quizzes(
        teacher: User = Depends(current_teacher),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> list[dict[str, object]]:
        return [quiz.to_record() for quiz in manager.get_teacher_quizzes(teacher.id)]

    @app.get("/quizzes/by-code/{code}")
    def find_by_code(
        code: str,
        user: User = Depends(current_user),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        return manager.get_quiz_by_code(code).to_record()

    @app.get("/quizzes/{quiz_id}")
    def get_quiz(
        quiz_id: str,
        user: User = Depends(current_user),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        return manager.get_quiz(quiz_id).to_record()

    @app.put("/quizzes/{quiz_id}")
    def update_quiz(
        quiz_id: str,
        payload: UpdateQuizPayload,
        teacher: User = Depends(current_teacher),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        quiz = manager.update_quiz(
            quiz_id,
            teacher.id,
            title=payload.title,
            description=payload.description,
            settings=payload.settings.to_settings() if payload.settings else None,
            question_ids=payload.question_ids,
        )
        return quiz.to_record()

    @app.get("/quizzes/{quiz_id}/questions")
    def list_questions(
        quiz_id: str,
        teacher: User = Depends(current_teacher),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> list[dict[str, object]]:
        return [_question_payload(q, reveal_answers=True) for q in manager.get_questions(quiz_id)]

    @app.post("/quizzes/{quiz_id}/questions", status_code=201)
    def save_question(
        quiz_id: str,
        payload: SaveQuestionPayload,
        teacher: User = Depends(current_teacher),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        saved = manager.save_question(teacher.id, payload.to_question(quiz_id), add_to_bank=payload.add_to_bank)
        return _question_payload(saved, reveal_answers=True)

    @app.post("/quizzes/{quiz_id}/import", status_code=201)
    def import_questions(
        quiz_id: str,
        payload: ImportPayload,
        teacher: User = Depends(current_teacher),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> list[dict[str, object]]:
        saved = manager.import_questions(teacher.id, quiz_id, payload.text, add_to_bank=payload.add_to_bank)
        return [_question_payload(q, reveal_answers=True) for q in saved]

    @app.get("/quizzes/{quiz_id}/export", response_class=PlainTextResponse)
    def export_questions(
        quiz_id: str,
        teacher: User = Depends(current_teacher),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> str:
        try:
            return manager.export_questions(quiz_id)
        except ValueError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc

    @app.get("/quizzes/{quiz_id}/analytics")
    def quiz_analytics(
        quiz_id: str,
        teacher: User = Depends(current_teacher),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        summary = manager.get_quiz_summary(quiz_id)
        return {
            "summary": {
                "participants": summary.participants,
                "class_average": summary.class_average,
                "average_score": summary.average_score,
                "average_duration_minutes": summary.average_duration_minutes,
                "category_count": summary.category_count,
            },
            "categories": [
                {
                    "category": stat.category,
                    "accuracy": stat.accuracy,
                    "earned_points": stat.earned_points,
                    "max_points": stat.max_points,
                    "total_questions": stat.total_questions,
                }
                for stat in manager.get_category_breakdown(quiz_id)
            ],
            "leaderboard": [
                {
                    "rank": row.rank,
                    "attempt_id": row.attempt_id,
                    "student_id": row.student_id,
                    "score": row.score,
                    "max_score": row.max_score,
                    "time_taken_seconds": row.time_taken_seconds,
                }
                for row in manager.get_leaderboard(quiz_id)
            ],
        }

    # --- Generation & Bank ---

    @app.post("/generate")
    def generate_questions(
        payload: GeneratePayload,
        teacher: User = Depends(current_teacher),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> list[dict[str, object]]:
        drafts = manager.generate_questions(payload.topic, payload.count)
        return [_question_payload(q, reveal_answers=True) for q in drafts]

    @app.post("/practice", status_code=201)
    def create_practice(
        payload: GeneratePayload,
        student: User = Depends(current_student),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        return manager.create_practice_quiz(student.id, payload.topic, payload.count).to_record()

    @app.get("/bank")
    def question_bank(
        category: str | None = None,
        teacher: User = Depends(current_teacher),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> list[dict[str, object]]:
        return [_question_payload(q, reveal_answers=True) for q in manager.get_question_bank(category)]

    @app.post("/bank/{bank_question_id}/copy", status_code=201)
    def copy_from_bank(
        bank_question_id: str,
        payload: CopyFromBankPayload,
        teacher: User = Depends(current_teacher),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        copied = manager.copy_from_bank(teacher.id, bank_question_id, payload.quiz_id)
        return _question_payload(copied, reveal_answers=True)

    # --- Attempts ---

    @app.post("/quizzes/{quiz_id}/attempts", status_code=201)
    def start_attempt(
        quiz_id: str,
        student: User = Depends(current_student),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        return _session_payload(manager.start_attempt(student.id, quiz_id))

    @app.get("/attempts/{attempt_id}")
    def get_attempt(
        attempt_id: str,
        user: User = Depends(current_user),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        attempt = _visible_attempt(manager, user, attempt_id)
        payload: dict[str, object] = {
            "attempt": attempt.to_record(),
            "time_left_seconds": manager.get_time_left(attempt_id),
        }
        if attempt.is_completed:
            payload["questions"] = [
                _question_payload(q, reveal_answers=True) for q in manager.get_questions(attempt.quiz_id)
            ]
            payload["categories"] = [
                {"category": p.category, "score": p.score, "max_score": p.max_score, "percentage": p.percentage}
                for p in manager.get_attempt_breakdown(attempt_id)
            ]
        return payload

    @app.post("/attempts/{attempt_id}/answers")
    def answer_question(
        attempt_id: str,
        payload: AnswerPayload,
        student: User = Depends(current_student),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        attempt = manager.answer_question(student.id, attempt_id, payload.question_id, payload.option_id)
        return attempt.to_record()

    @app.put("/attempts/{attempt_id}/progress")
    def save_progress(
        attempt_id: str,
        payload: ProgressPayload,
        student: User = Depends(current_student),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        attempt = manager.save_progress(
            student.id,
            attempt_id,
            answers=payload.answers,
            last_question_idx=payload.last_question_idx,
            time_left_seconds=payload.time_left_seconds,
        )
        return attempt.to_record()

    @app.post("/attempts/{attempt_id}/submit")
    def submit_attempt(
        attempt_id: str,
        student: User = Depends(current_student),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        return manager.submit_attempt(student.id, attempt_id).to_record()

    @app.get("/me/attempts")
    def my_attempts(
        student: User = Depends(current_student),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        return {
            "active": [a.to_record() for a in manager.get_active_attempts(student.id)],
            "completed": [a.to_record() for a in manager.get_completed_attempts(student.id)],
        }

    # --- Notifications ---

    @app.get("/notifications")
    def list_notifications(
        user: User = Depends(current_user),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> list[dict[str, object]]:
        return [n.to_record() for n in manager.get_notifications(user.id)]

    @app.post("/notifications/read-all")
    def read_all_notifications(
        user: User = Depends(current_user),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        return {"updated": manager.mark_all_notifications_read(user.id)}

    @app.post("/notifications/{notification_id}/read")
    def read_notification(
        notification_id: str,
        user: User = Depends(current_user),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        return manager.mark_notification_read(user.id, notification_id).to_record()

    return app


def _visible_attempt(manager: QuizManager, user: User, attempt_id: str) -> QuizAttempt:
    """Students see their own attempts; teachers see attempts on quizzes they own."""
    attempt = manager.get_attempt(attempt_id)
    if user.role is UserRole.STUDENT and attempt.student_id == user.id:
        return attempt
    if user.role is UserRole.TEACHER and manager.get_quiz(attempt.quiz_id).teacher_id == user.id:
        return attempt
    raise PermissionDenied("You cannot view this attempt.")


def run_api_server(quiz_manager: QuizManager, host: str = DEFAULT_HOST, port: int = DEFAULT_PORT) -> None:
    """Serve the API on the calling thread until interrupted."""
    _build_server(quiz_manager, host, port).run()


def _build_server(quiz_manager: QuizManager, host: str, port: int) -> uvicorn.Server:
    app = create_api_app(quiz_manager)
    config = uvicorn.Config(app=app, host=host, port=port, log_level="info")
    return uvicorn.Server(config)
