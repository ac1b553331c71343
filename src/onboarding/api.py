"""
Onboarding API Endpoints.

Separate router for the onboarding flow. One OnboardingSession per user is
held in process; each session owns its user's local channel.
"""

import logging
from typing import Any, Callable

from fastapi import APIRouter, Depends, Header, HTTPException
from pydantic import BaseModel, Field, ValidationError

from .automations import get_automation_options
from .completion import is_onboarded
from .errors import InvalidSignalError, InvalidTransitionError, OnboardingError, UnknownAutomationError
from .forms import GoalsForm, NameForm, VoiceProfileForm, get_form_options
from .session import OnboardingSession, describe_recovery
from .steps import MODE_LABELS, SetupMode

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/onboarding", tags=["onboarding"])


# =============================================================================
# Auth
# =============================================================================

class AuthenticatedUser(BaseModel):
    """Authenticated user info from Supabase JWT."""
    id: str
    email: str | None = None
    access_token: str


async def get_current_user(authorization: str = Header(None)) -> AuthenticatedUser:
    """
    Validate Supabase JWT and extract user info.

    Expects: Authorization: Bearer <supabase_access_token>
    """
    from sita.db.client import get_client

    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing or invalid authorization header")

    token = authorization.replace("Bearer ", "")

    try:
        client = get_client()
        user_response = client.auth.get_user(token)

        if not user_response or not user_response.user:
            raise HTTPException(status_code=401, detail="Invalid token")

        return AuthenticatedUser(
            id=user_response.user.id,
            email=user_response.user.email,
            access_token=token,
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Auth error: {e}")
        raise HTTPException(status_code=401, detail="Authentication failed")


# =============================================================================
# Request Models
# =============================================================================

class ModeRequest(BaseModel):
    mode: SetupMode


class SignalRequest(BaseModel):
    """A discovery answer. elapsed_ms is measured client-side when available."""
    question: str
    value: Any
    elapsed_ms: int | None = Field(default=None, ge=0)


class SkipQuestionRequest(BaseModel):
    question: str


class UpdateRequest(BaseModel):
    """Set a top-level field, or one key of a dict field when `key` is given."""
    field: str
    value: Any = None
    key: str | None = None


class NameRequest(BaseModel):
    name: str


# =============================================================================
# Session Registry
# =============================================================================

_sessions: dict[str, OnboardingSession] = {}


def _default_factory(user_id: str) -> OnboardingSession:
    from sita.config import settings
    from sita.storage import JsonFileChannel

    channel = JsonFileChannel(settings.local_store_path.parent / "users" / f"{user_id}.json")
    return OnboardingSession.from_settings(channel=channel, user_id=user_id)


_session_factory: Callable[[str], OnboardingSession] = _default_factory


def set_session_factory(factory: Callable[[str], OnboardingSession] | None) -> None:
    """Swap how sessions are built (tests). None restores the default."""
    global _session_factory
    _session_factory = factory or _default_factory
    for user_id in list(_sessions):
        drop_session(user_id)


def get_session(user_id: str) -> OnboardingSession:
    """Existing session for a user, or a new not-yet-started one."""
    session = _sessions.get(user_id)
    if session is None:
        session = _session_factory(user_id)
        _sessions[user_id] = session
    return session


def drop_session(user_id: str) -> None:
    """Forget a user's session and release its observer (session log file)."""
    session = _sessions.pop(user_id, None)
    if session is not None:
        session.close()


def _raise_http(e: Exception) -> None:
    """Map onboarding errors to HTTP errors."""
    if isinstance(e, UnknownAutomationError):
        raise HTTPException(status_code=404, detail=str(e))
    if isinstance(e, (InvalidTransitionError, InvalidSignalError, OnboardingError, ValueError)):
        raise HTTPException(status_code=400, detail=str(e))
    raise e


def _state(session: OnboardingSession) -> dict:
    return {**session.snapshot(), "onboarded": is_onboarded(session.channel)}


# =============================================================================
# Endpoints: State & Recovery
# =============================================================================


@router.get("/state")
async def get_onboarding_state(user: AuthenticatedUser = Depends(get_current_user)) -> dict:
    """Current onboarding position and collected data."""
    return _state(get_session(user.id))


@router.get("/recovery")
async def check_recovery(user: AuthenticatedUser = Depends(get_current_user)) -> dict:
    """Saved progress the user can continue from. Does not change the session."""
    session = get_session(user.id)
    saved = session.check_recovery()
    if saved is None:
        return {"available": False}
    return {
        "available": True,
        "step": saved.step,
        "mode": saved.mode.value,
        "mode_label": MODE_LABELS[saved.mode],
        "timestamp": saved.timestamp,
        "description": describe_recovery(saved),
    }


@router.post("/resume")
async def resume(user: AuthenticatedUser = Depends(get_current_user)) -> dict:
    """Continue from saved progress."""
    session = get_session(user.id)
    saved = session.check_recovery()
    if saved is None:
        raise HTTPException(status_code=404, detail="No saved onboarding progress")
    try:
        session.resume(saved)
    except OnboardingError as e:
        _raise_http(e)
    return _state(session)


@router.post("/start")
async def start_fresh(user: AuthenticatedUser = Depends(get_current_user)) -> dict:
    """Discard saved progress and start at the entry step."""
    session = get_session(user.id)
    if session.is_complete:
        drop_session(user.id)
        session = get_session(user.id)
    session.start_fresh()
    return _state(session)


@router.get("/options")
async def get_options() -> dict:
    """Options for choice-based steps and the automation catalog."""
    return {
        **get_form_options(),
        "setup_modes": [{"id": m.value, "label": label} for m, label in MODE_LABELS.items()],
        "automations": get_automation_options(),
    }


# =============================================================================
# Endpoints: Navigation
# =============================================================================


@router.post("/mode")
async def choose_mode(request: ModeRequest, user: AuthenticatedUser = Depends(get_current_user)) -> dict:
    session = get_session(user.id)
    try:
        session.choose_mode(request.mode)
    except OnboardingError as e:
        _raise_http(e)
    return _state(session)


@router.post("/advance")
async def advance(user: AuthenticatedUser = Depends(get_current_user)) -> dict:
    session = get_session(user.id)
    try:
        moved = session.advance()
    except OnboardingError as e:
        _raise_http(e)
    return {**_state(session), "moved": moved}


@router.post("/retreat")
async def retreat(user: AuthenticatedUser = Depends(get_current_user)) -> dict:
    session = get_session(user.id)
    try:
        moved = session.retreat()
    except OnboardingError as e:
        _raise_http(e)
    return {**_state(session), "moved": moved}


@router.post("/skip-to-end")
async def skip_to_end(user: AuthenticatedUser = Depends(get_current_user)) -> dict:
    session = get_session(user.id)
    try:
        moved = session.skip_to_end()
    except OnboardingError as e:
        _raise_http(e)
    return {**_state(session), "moved": moved}


# =============================================================================
# Endpoints: Data
# =============================================================================


@router.post("/signal")
async def record_signal(request: SignalRequest, user: AuthenticatedUser = Depends(get_current_user)) -> dict:
    """Record a discovery answer on the current step."""
    session = get_session(user.id)
    try:
        answer = session.record_signal(request.question, request.value, elapsed_ms=request.elapsed_ms)
    except (OnboardingError, ValueError) as e:
        _raise_http(e)
    return {
        "question": request.question,
        "value": answer.value,
        "elapsed_ms": answer.elapsed_ms,
        "changes": answer.changes,
    }


@router.post("/signal/skip")
async def skip_question(request: SkipQuestionRequest, user: AuthenticatedUser = Depends(get_current_user)) -> dict:
    session = get_session(user.id)
    try:
        answer = session.skip_question(request.question)
    except (OnboardingError, ValueError) as e:
        _raise_http(e)
    return {"question": request.question, "value": answer.value, "skipped": True}


@router.post("/name")
async def submit_name(request: NameRequest, user: AuthenticatedUser = Depends(get_current_user)) -> dict:
    session = get_session(user.id)
    try:
        form = NameForm(name=request.name)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.errors()[0]["msg"])
    try:
        session.update("name", form.name)
    except OnboardingError as e:
        _raise_http(e)
    return _state(session)


@router.post("/goals")
async def submit_goals(request: GoalsForm, user: AuthenticatedUser = Depends(get_current_user)) -> dict:
    session = get_session(user.id)
    try:
        session.update("primary_intents", request.primary_intents)
        session.update("north_star_metrics", request.north_star_metrics)
    except OnboardingError as e:
        _raise_http(e)
    return _state(session)


@router.post("/voice")
async def submit_voice(request: VoiceProfileForm, user: AuthenticatedUser = Depends(get_current_user)) -> dict:
    session = get_session(user.id)
    try:
        session.update("voice_profile", request.model_dump())
    except OnboardingError as e:
        _raise_http(e)
    return _state(session)


@router.patch("/data")
async def update_data(request: UpdateRequest, user: AuthenticatedUser = Depends(get_current_user)) -> dict:
    """Generic field update for steps without a dedicated form."""
    session = get_session(user.id)
    try:
        if request.key is None:
            session.update(request.field, request.value)
        else:
            session.update_nested(request.field, request.key, request.value)
    except OnboardingError as e:
        # A bad id inside a written list is a bad request, not a missing resource
        raise HTTPException(status_code=400, detail=str(e))
    return _state(session)


@router.post("/automations/{template_id}/toggle")
async def toggle_automation(template_id: str, user: AuthenticatedUser = Depends(get_current_user)) -> dict:
    session = get_session(user.id)
    try:
        changed = session.toggle_automation(template_id)
    except OnboardingError as e:
        _raise_http(e)
    return {
        "changed": changed,
        "enabled": [a["id"] for a in session.data.automations],
    }


# =============================================================================
# Endpoints: Profile & Completion
# =============================================================================


@router.get("/preview")
async def get_preview(user: AuthenticatedUser = Depends(get_current_user)) -> dict:
    """Cognitive profile and the adaptation statements shown to the user."""
    session = get_session(user.id)
    return {
        "profile": session.cognitive_profile().to_dict(),
        "statements": session.adaptation_preview(),
    }


@router.post("/complete")
async def complete(user: AuthenticatedUser = Depends(get_current_user)) -> dict:
    """
    Finish onboarding.

    The local record is written before this returns. A remote save failure is
    reported in `remote` but does not fail the request.
    """
    session = get_session(user.id)
    try:
        result = await session.complete()
    except OnboardingError as e:
        _raise_http(e)
    drop_session(user.id)

    remote = result.remote
    body: dict[str, Any] = {"status": type(remote).__name__}
    if hasattr(remote, "reason"):
        body["reason"] = remote.reason
    if hasattr(remote, "kind"):
        body["kind"] = remote.kind

    return {
        "success": True,
        "completed_at": result.record.completed_at,
        "setup_mode": result.record.setup_mode.value,
        "remote": body,
    }
