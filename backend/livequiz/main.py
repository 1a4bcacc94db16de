from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from .db import Settings, get_settings
from .errors import AuthRequired, QuizError
from .generation import QuizGenerator
from .logging_config import configure_logging
from .models import QuestionIn
from .schemas import (
    ActivateIn,
    AnswerIn,
    GameStateOut,
    LeaderboardOut,
    LoginIn,
    QuestionOut,
    RegisterUserIn,
    TopicIn,
    UserOut,
)
from .service import LiveQuiz
from .storage import NoteStorage
from .utils import note_filename


def get_quiz(request: Request) -> LiveQuiz:
    return request.app.state.quiz


def get_generator(request: Request) -> QuizGenerator:
    return request.app.state.generator


def get_note_storage(request: Request) -> NoteStorage:
    return request.app.state.note_storage


def require_admin(request: Request, x_admin_key: Optional[str] = Header(default=None)):
    if x_admin_key != request.app.state.settings.ADMIN_KEY:
        raise HTTPException(status_code=401, detail="Invalid admin key")


def bearer_token(authorization: Optional[str] = Header(default=None)) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    return token.strip()


def require_topic(payload: TopicIn) -> str:
    topic = payload.topic.strip()
    if not topic:
        raise HTTPException(status_code=400, detail="Topic is required")
    return topic


def create_app(
    settings: Optional[Settings] = None,
    quiz: Optional[LiveQuiz] = None,
    generator: Optional[QuizGenerator] = None,
    note_storage: Optional[NoteStorage] = None,
) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.LOG_LEVEL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await app.state.quiz.start()
        try:
            yield
        finally:
            await app.state.quiz.stop()

    app = FastAPI(title="LiveQuiz API", lifespan=lifespan)
    app.state.settings = settings
    app.state.quiz = quiz or LiveQuiz.from_settings(settings)
    app.state.generator = generator or QuizGenerator(settings)
    app.state.note_storage = note_storage or NoteStorage(settings)

    origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins or ["*"],
        allow_origin_regex=settings.CORS_ORIGIN_REGEX or None,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(QuizError)
    async def quiz_error_handler(request: Request, exc: QuizError):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

    # auth

    @app.post("/api/auth/login")
    async def login(payload: LoginIn, quiz: LiveQuiz = Depends(get_quiz)):
        token = quiz.auth.sign_in(payload.email, payload.password)
        return {"token": token, "identity": quiz.identity(token).model_dump()}

    @app.post("/api/auth/logout")
    async def logout(token: Optional[str] = Depends(bearer_token), quiz: LiveQuiz = Depends(get_quiz)):
        if token:
            quiz.auth.sign_out(token)
        return {"ok": True}

    @app.get("/api/auth/me")
    async def me(token: Optional[str] = Depends(bearer_token), quiz: LiveQuiz = Depends(get_quiz)):
        identity = quiz.identity(token)
        if identity is None:
            raise AuthRequired()
        return identity.model_dump()

    # public views

    @app.get("/api/state")
    async def state(token: Optional[str] = Depends(bearer_token), quiz: LiveQuiz = Depends(get_quiz)):
        return await quiz.public_state(token)

    @app.get("/api/leaderboard", response_model=LeaderboardOut)
    async def leaderboard(quiz: LiveQuiz = Depends(get_quiz)):
        return LeaderboardOut(ready=quiz.leaderboard_feed.ready, leaderboard=quiz.leaderboard)

    @app.get("/api/events")
    async def list_events(
        after: int | None = None, limit: int = Query(200, ge=1, le=1000), quiz: LiveQuiz = Depends(get_quiz)
    ):
        events = await quiz.events.list(after=after, limit=limit)
        latest_seq = events[-1]["seq"] if events else after
        return {"events": events, "latest_seq": latest_seq}

    @app.post("/api/answer")
    async def answer(payload: AnswerIn, token: Optional[str] = Depends(bearer_token), quiz: LiveQuiz = Depends(get_quiz)):
        record = await quiz.submit_answer(token, payload.option_key)
        return {"accepted": True, "answer": record.model_dump()}

    # admin

    @app.get("/api/admin/verify", dependencies=[Depends(require_admin)])
    async def verify():
        return {"ok": True}

    @app.get("/api/questions", response_model=list[QuestionOut], dependencies=[Depends(require_admin)])
    async def list_questions(quiz: LiveQuiz = Depends(get_quiz)):
        return await quiz.list_questions()

    @app.post("/api/admin/questions", response_model=QuestionOut, dependencies=[Depends(require_admin)])
    async def create_question(payload: QuestionIn, quiz: LiveQuiz = Depends(get_quiz)):
        return await quiz.create_question(payload)

    @app.put("/api/admin/questions/{question_id}", response_model=QuestionOut, dependencies=[Depends(require_admin)])
    async def update_question(question_id: str, payload: QuestionIn, quiz: LiveQuiz = Depends(get_quiz)):
        return await quiz.update_question(question_id, payload)

    @app.delete("/api/admin/questions/{question_id}", dependencies=[Depends(require_admin)])
    async def delete_question(question_id: str, quiz: LiveQuiz = Depends(get_quiz)):
        await quiz.delete_question(question_id)
        return {"ok": True}

    @app.post("/api/admin/activate", response_model=GameStateOut, dependencies=[Depends(require_admin)])
    async def activate(payload: ActivateIn, quiz: LiveQuiz = Depends(get_quiz)):
        return await quiz.activate_question(payload.question_id)

    @app.post("/api/admin/clear", response_model=GameStateOut, dependencies=[Depends(require_admin)])
    async def clear(quiz: LiveQuiz = Depends(get_quiz)):
        return await quiz.clear_active_question()

    @app.post("/api/admin/reveal", response_model=GameStateOut, dependencies=[Depends(require_admin)])
    async def reveal(quiz: LiveQuiz = Depends(get_quiz)):
        return await quiz.toggle_reveal()

    @app.post("/api/admin/answers/clear", dependencies=[Depends(require_admin)])
    async def clear_answers(quiz: LiveQuiz = Depends(get_quiz)):
        await quiz.clear_answers()
        return {"ok": True}

    @app.get("/api/admin/users", response_model=list[UserOut], dependencies=[Depends(require_admin)])
    async def list_users(quiz: LiveQuiz = Depends(get_quiz)):
        return [u.public() for u in quiz.list_users()]

    @app.post("/api/admin/users", response_model=UserOut, dependencies=[Depends(require_admin)])
    async def register_user(payload: RegisterUserIn, quiz: LiveQuiz = Depends(get_quiz)):
        return quiz.register_user(payload.email, payload.password).public()

    @app.delete("/api/admin/users/{uid}", dependencies=[Depends(require_admin)])
    async def delete_user(uid: str, quiz: LiveQuiz = Depends(get_quiz)):
        await quiz.delete_user(uid)
        return {"ok": True}

    # AI drafting

    @app.post("/api/generate/question", response_model=QuestionIn, dependencies=[Depends(require_admin)])
    async def generate_question(topic: str = Depends(require_topic), generator: QuizGenerator = Depends(get_generator)):
        return await generator.draft_question(topic)

    @app.post("/api/generate/note", dependencies=[Depends(require_admin)])
    async def generate_note(topic: str = Depends(require_topic), generator: QuizGenerator = Depends(get_generator)):
        return {"note": await generator.write_note(topic)}

    @app.post("/api/generate/note/download", dependencies=[Depends(require_admin)])
    async def download_note(
        topic: str = Depends(require_topic),
        generator: QuizGenerator = Depends(get_generator),
        storage: NoteStorage = Depends(get_note_storage),
    ):
        note = await generator.write_note(topic)
        if storage.configured:
            try:
                url = await storage.upload_note(topic, note)
            except Exception as exc:
                raise HTTPException(status_code=500, detail="Failed to upload note") from exc
            return {"url": url, "filename": note_filename(topic)}

        return PlainTextResponse(
            note,
            media_type="text/markdown",
            headers={"Content-Disposition": f'attachment; filename="{note_filename(topic)}"'},
        )

    return app


app = create_app()
