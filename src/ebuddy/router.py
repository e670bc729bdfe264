import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse, JSONResponse

from .context import AppContext, get_context
from .models import (
    CardMode,
    Direction,
    ProgressSummary,
    QuizSnapshot,
    RankingEntry,
    Theme,
    UserSettings,
)
from .progress import leaderboard, summarize

logger = logging.getLogger(__name__)

router = APIRouter()


def _notify(ctx: AppContext, new_badges: List[str]) -> List[str]:
    return new_badges if ctx.user_settings.badge_notifications else []


def _card_payload(ctx: AppContext, mode: Optional[CardMode] = None):
    view = ctx.deck.view(mode or ctx.user_settings.card_mode)
    return view.model_dump(mode="json") if view else None


def _quiz_conflict(action: str) -> JSONResponse:
    return JSONResponse({"error": f"Cannot {action} now"}, status_code=409)


# --- Pages ---
@router.get("/", response_class=HTMLResponse)
async def home(request: Request, ctx: AppContext = Depends(get_context)):
    summary = summarize(ctx.progress.snapshot())
    pool = ctx.vocab_manager.pool()
    card = ctx.deck.last_card() or (ctx.rng.choice(pool) if pool else None)
    return ctx.templates.TemplateResponse(
        request,
        "home.html",
        {
            "summary": summary,
            "card": card,
            "name": ctx.user_settings.name or "You",
            "theme": ctx.user_settings.theme.value,
            "has_static": any(getattr(route, "name", None) == "static" for route in request.app.routes),
        },
    )


# --- Progress ---
@router.get("/api/categories")
async def get_categories(ctx: AppContext = Depends(get_context)):
    return ctx.vocab_manager.get_categories()


@router.get("/api/progress", response_model=ProgressSummary)
async def get_progress(ctx: AppContext = Depends(get_context)):
    return summarize(ctx.progress.snapshot())


@router.post("/api/progress/reset")
async def reset_progress(ctx: AppContext = Depends(get_context)):
    ctx.reset_all()
    return {"status": "success"}


@router.get("/api/ranking", response_model=List[RankingEntry])
async def get_ranking(ctx: AppContext = Depends(get_context)):
    return leaderboard(ctx.user_settings.name, ctx.progress.snapshot().xp)


# --- Settings ---
@router.get("/api/settings", response_model=UserSettings)
async def get_settings(ctx: AppContext = Depends(get_context)):
    return ctx.user_settings


@router.put("/api/settings", response_model=UserSettings)
async def update_settings(
    name: Optional[str] = Form(None),
    theme: Optional[Theme] = Form(None),
    card_mode: Optional[CardMode] = Form(None),
    quiz_direction: Optional[Direction] = Form(None),
    speech: Optional[bool] = Form(None),
    badge_notifications: Optional[bool] = Form(None),
    ctx: AppContext = Depends(get_context),
):
    changes = {
        "name": name.strip() if name is not None else None,
        "theme": theme,
        "card_mode": card_mode,
        "quiz_direction": quiz_direction,
        "speech": speech,
        "badge_notifications": badge_notifications,
    }
    updated = ctx.user_settings.model_copy(
        update={key: value for key, value in changes.items() if value is not None}
    )
    ctx.save_user_settings(updated)
    logger.info("User settings saved.")
    return updated


# --- Flashcards ---
@router.get("/api/cards")
async def get_card(mode: Optional[CardMode] = None, ctx: AppContext = Depends(get_context)):
    card = _card_payload(ctx, mode)
    if card is None:
        return JSONResponse({"error": "No cards match the filter"}, status_code=404)
    return card


@router.post("/api/cards/filter")
async def filter_cards(
    category: str = Form("all"),
    level: str = Form("all"),
    ctx: AppContext = Depends(get_context),
):
    ctx.deck.apply_filters(category, level)
    return {"count": len(ctx.deck.items), "card": _card_payload(ctx)}


@router.post("/api/cards/{action}")
async def card_action(action: str, ctx: AppContext = Depends(get_context)):
    deck = ctx.deck
    new_badges: List[str] = []
    if action == "next":
        deck.next()
    elif action == "prev":
        deck.prev()
    elif action == "shuffle":
        deck.shuffle()
    elif action == "reveal":
        deck.toggle_reveal()
    elif action == "known":
        new_badges = deck.mark_known()
    elif action == "unknown":
        new_badges = deck.mark_unknown()
    elif action == "favorite":
        deck.toggle_favorite()
    elif action == "speak":
        item = deck.current()
        spoken = bool(item and ctx.user_settings.speech)
        if spoken:
            ctx.speaker.speak(item.en)
        return {"spoken": spoken}
    else:
        return JSONResponse({"error": f"Unknown action '{action}'"}, status_code=404)
    return {"card": _card_payload(ctx), "new_badges": _notify(ctx, new_badges)}


# --- Quiz ---
@router.post("/api/quiz/start", response_model=QuizSnapshot)
async def start_quiz(
    mode: str = Form("ten"),
    direction: Optional[str] = Form(None),
    category: str = Form("all"),
    ctx: AppContext = Depends(get_context),
):
    ctx.quiz.start(
        mode,
        direction or ctx.user_settings.quiz_direction,
        category,
        ctx.vocab_manager.pool(),
    )
    return ctx.quiz.snapshot()


@router.get("/api/quiz", response_model=QuizSnapshot)
async def get_quiz(ctx: AppContext = Depends(get_context)):
    return ctx.quiz.snapshot()


@router.post("/api/quiz/answer")
async def submit_answer(
    selected_option_index: int = Form(...),
    ctx: AppContext = Depends(get_context),
):
    question = ctx.quiz.question
    if question is not None and not (0 <= selected_option_index < len(question.options)):
        return JSONResponse({"error": "Invalid option"}, status_code=400)
    result = ctx.quiz.submit_option(selected_option_index)
    if result is None:
        return _quiz_conflict("answer")
    result.new_badges = _notify(ctx, result.new_badges)
    return {
        "result": result.model_dump(mode="json"),
        "quiz": ctx.quiz.snapshot().model_dump(mode="json"),
    }


@router.post("/api/quiz/skip", response_model=QuizSnapshot)
async def skip_question(ctx: AppContext = Depends(get_context)):
    ctx.quiz.skip()
    return ctx.quiz.snapshot()


@router.post("/api/quiz/end")
async def end_quiz(ctx: AppContext = Depends(get_context)):
    summary = ctx.quiz.end()
    if summary is None:
        return _quiz_conflict("end a quiz that was never started")
    return summary


@router.post("/api/quiz/retry", response_model=QuizSnapshot)
async def retry_quiz(ctx: AppContext = Depends(get_context)):
    if ctx.quiz.vocab is None:
        return _quiz_conflict("retry")
    ctx.quiz.retry()
    return ctx.quiz.snapshot()


@router.post("/api/quiz/review", response_model=QuizSnapshot)
async def review_quiz(ctx: AppContext = Depends(get_context)):
    if ctx.quiz.review() is None:
        return _quiz_conflict("review without missed words")
    return ctx.quiz.snapshot()


@router.post("/api/quiz/reset")
async def reset_quiz(ctx: AppContext = Depends(get_context)):
    ctx.quiz.reset()
    return {"status": "success"}


@router.post("/api/quiz/speak")
async def speak_question(ctx: AppContext = Depends(get_context)):
    item = ctx.quiz.current_item()
    spoken = bool(item and ctx.user_settings.speech)
    if spoken:
        ctx.speaker.speak(item.en)
    return {"spoken": spoken}
