from __future__ import annotations

import hashlib
import json
import logging
import os
import re
from contextlib import asynccontextmanager
from dataclasses import asdict
from pathlib import Path
from typing import Any

from fastapi import FastAPI, Header, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field, ValidationError

from assistant_core import (
    ChatSession,
    HistoryItemNotFound,
    IntentClassifier,
    Mode,
    ModeError,
    message_to_dict,
    random_typing_delay,
)
from assistant_tools import (
    CompletionClient,
    NotificationFeed,
    Origin,
    Provider,
    ProviderDiscovery,
    ReminderScheduler,
)
from assistant_tools.forms import AppointmentForm, ReminderForm, SymptomCheckerForm
from assistant_tools.health_data import (
    AVAILABLE_APPOINTMENTS,
    HEALTH_FAQS,
    HEALTH_TIPS,
    MAIN_MENU_OPTIONS,
    SYMPTOMS,
)
from memory import Identity, ProfileData, ProfileNotFound, ProfileStore, Reminder, SQLiteProfileDB
from memory.profile_models import PROFILE_SECTIONS
from memory.time_utils import to_iso, utc_now

_ENV_KEY_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _load_local_env_file(path: Path) -> None:
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError:
        return
    for raw in lines:
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        if not _ENV_KEY_RE.fullmatch(key):
            continue
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
            value = value[1:-1]
        os.environ.setdefault(key, value)


def _bootstrap_local_env() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    for candidate in (repo_root / ".env", repo_root / "backend/.env"):
        if candidate.exists():
            _load_local_env_file(candidate)


_bootstrap_local_env()

logging.basicConfig(
    level=os.getenv("ASSISTANT_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("health_assistant")


class LoginRequest(BaseModel):
    email: str = ""
    name: str = ""
    session_key: str | None = None


class ChatMessageRequest(BaseModel):
    message: str


class OptionRequest(BaseModel):
    option: str = Field(min_length=1)


class HealthTipSelection(BaseModel):
    content: str = Field(min_length=1)


class ProviderSelection(BaseModel):
    id: str
    name: str = Field(min_length=1)
    specialty: str = ""
    address: str = ""
    distance: str = ""
    rating: float | None = None
    lat: float | None = None
    lng: float | None = None


class HealthAssistantApp:
    def __init__(self) -> None:
        db_path = os.getenv(
            "ASSISTANT_DB_PATH",
            str((Path(__file__).resolve().parent / "assistant.sqlite")),
        )
        self.db = SQLiteProfileDB(db_path)
        self.store = ProfileStore(self.db)
        self.completion = CompletionClient()
        self.discovery = ProviderDiscovery()
        self.notifications = NotificationFeed()
        self.scheduler = ReminderScheduler(self.store, self._notify)
        self.sessions: dict[str, ChatSession] = {}

    def _notify(self, identity: Identity, reminder: Reminder) -> None:
        notification = self.notifications.push(identity, reminder)
        logger.info("notification raised for %s: %s", identity.user_id, notification.body)

    def new_session(self) -> ChatSession:
        return ChatSession(
            store=self.store,
            classifier=IntentClassifier(self.completion),
            scheduler=self.scheduler,
            typing_delay=random_typing_delay(),
        )

    async def login(self, identity: Identity, session_key: str | None = None) -> ChatSession:
        existing = self.sessions.pop(identity.user_id, None)
        if existing is not None:
            await existing.end()
        session = self.new_session()
        await session.start(identity, session_key or self.store.open_session(identity))
        self.sessions[identity.user_id] = session
        return session

    async def logout(self, user_id: str) -> None:
        session = self.sessions.pop(user_id, None)
        if session is None:
            raise HTTPException(status_code=401, detail="No active session")
        session_key = session.context.session_key
        await session.end()
        if session_key:
            self.store.close_session(session_key)

    async def shutdown(self) -> None:
        for user_id in list(self.sessions):
            await self.sessions.pop(user_id).end()
        self.scheduler.cancel_all()


container = HealthAssistantApp()


@asynccontextmanager
async def lifespan(_: FastAPI):
    yield
    await container.shutdown()


app = FastAPI(title="Smart Healthcare Assistant", lifespan=lifespan)

allowed_origins = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in allowed_origins],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_user_id(auth_header: str | None) -> str:
    if not auth_header:
        if os.getenv("ALLOW_ANON", "false").lower() == "true":
            return "demo-user"
        raise HTTPException(status_code=401, detail="Missing Authorization")
    raw = auth_header.replace("Bearer", "", 1).strip()
    if not raw:
        if os.getenv("ALLOW_ANON", "false").lower() == "true":
            return "demo-user"
        raise HTTPException(status_code=401, detail="Missing Authorization")
    if len(raw) > 96:
        return f"token_{hashlib.sha256(raw.encode('utf-8')).hexdigest()[:24]}"
    return raw


def _require_session(authorization: str | None) -> ChatSession:
    user_id = get_user_id(authorization)
    session = container.sessions.get(user_id)
    if session is None:
        raise HTTPException(status_code=401, detail="No active session")
    return session


def _emit_sse(event: str, data: dict[str, Any]) -> str:
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


def _turn_payload(session: ChatSession, appended: list[Any]) -> dict[str, Any]:
    return {
        "appended": [message_to_dict(message) for message in appended],
        "modes": session.modes.as_dict(),
    }


def _parse_mode(raw: str) -> Mode:
    try:
        return Mode(raw)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=f"Unknown mode: {raw}") from exc


@app.post("/session")
async def open_session(payload: LoginRequest, authorization: str | None = Header(default=None)):
    user_id = get_user_id(authorization)
    session_key = None
    if payload.session_key:
        restored = container.store.get_current_session(payload.session_key)
        if restored is None or restored.user_id != user_id:
            raise HTTPException(status_code=401, detail="Session expired")
        identity = restored
        session_key = payload.session_key
    else:
        identity = Identity(user_id=user_id, email=payload.email.strip(), name=payload.name.strip())
    session = await container.login(identity, session_key)
    return {"user_id": user_id, "session_key": session.context.session_key, **session.state()}


@app.delete("/session")
async def close_session(authorization: str | None = Header(default=None)):
    await container.logout(get_user_id(authorization))
    return {"ok": True}


@app.get("/chat/messages")
async def chat_messages(authorization: str | None = Header(default=None)):
    return _require_session(authorization).state()


@app.post("/chat/message")
async def chat_message(payload: ChatMessageRequest, authorization: str | None = Header(default=None)):
    session = _require_session(authorization)
    if not payload.message.strip():
        raise HTTPException(status_code=422, detail="Message must not be empty")
    appended = await session.send_message(payload.message)
    return _turn_payload(session, appended)


@app.post("/chat/option")
async def chat_option(payload: OptionRequest, authorization: str | None = Header(default=None)):
    session = _require_session(authorization)
    appended = await session.select_option(payload.option)
    return _turn_payload(session, appended)


@app.post("/chat/stream")
async def chat_stream(payload: ChatMessageRequest, authorization: str | None = Header(default=None)):
    session = _require_session(authorization)
    if not payload.message.strip():
        raise HTTPException(status_code=422, detail="Message must not be empty")

    async def event_stream():
        try:
            appended = await session.send_message(payload.message)
            for message in appended:
                yield _emit_sse("message", message_to_dict(message))
            yield _emit_sse("mode", session.modes.as_dict())
        except Exception as exc:
            logger.exception("chat_stream error: %s", exc)
            yield _emit_sse("error", {"message": "Chat pipeline error."})

    return StreamingResponse(event_stream(), media_type="text/event-stream")


@app.post("/chat/suggest-reply")
async def chat_suggest_reply(authorization: str | None = Header(default=None)):
    session = _require_session(authorization)
    return {"suggestion": await session.suggest_reply()}


@app.get("/modes")
async def get_modes(authorization: str | None = Header(default=None)):
    session = _require_session(authorization)
    provider = session.context.selected_provider
    return {
        **session.modes.as_dict(),
        "active_modes": [mode.value for mode in session.modes.active_modes()],
        "selected_provider": provider.as_dict() if provider else None,
    }


@app.post("/modes/symptom-checker/complete")
async def complete_symptom_checker(form: SymptomCheckerForm, authorization: str | None = Header(default=None)):
    session = _require_session(authorization)
    try:
        appended = await session.complete_symptom_checker(form)
    except ModeError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return _turn_payload(session, appended)


@app.post("/modes/appointment/complete")
async def complete_appointment(form: AppointmentForm, authorization: str | None = Header(default=None)):
    session = _require_session(authorization)
    try:
        message = await session.complete_appointment(form)
    except ModeError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return _turn_payload(session, [message])


@app.post("/modes/reminder/complete")
async def complete_reminder(form: ReminderForm, authorization: str | None = Header(default=None)):
    session = _require_session(authorization)
    try:
        message = await session.complete_reminder(form)
    except ModeError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return _turn_payload(session, [message])


@app.post("/modes/health-tips/select")
async def select_health_tip(payload: HealthTipSelection, authorization: str | None = Header(default=None)):
    session = _require_session(authorization)
    try:
        message = await session.select_health_tip(payload.content)
    except ModeError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return _turn_payload(session, [message])


@app.post("/modes/nearby-provider/select")
async def select_provider(payload: ProviderSelection, authorization: str | None = Header(default=None)):
    session = _require_session(authorization)
    try:
        message = await session.select_provider(Provider(**payload.model_dump()))
    except ModeError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return _turn_payload(session, [message])


@app.post("/modes/{mode}/cancel")
async def cancel_mode(mode: str, authorization: str | None = Header(default=None)):
    session = _require_session(authorization)
    target = _parse_mode(mode)
    try:
        session.cancel(target)
    except ModeError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return session.modes.as_dict()


def _history_payload(session: ChatSession) -> dict[str, Any]:
    return {
        "items": [item.model_dump(mode="json") for item in session.history_items()],
        "panel_open": session.modes.history_panel_open,
    }


@app.get("/history")
async def get_history(authorization: str | None = Header(default=None)):
    return _history_payload(_require_session(authorization))


@app.post("/history/open")
async def open_history(authorization: str | None = Header(default=None)):
    session = _require_session(authorization)
    session.open_history_panel()
    return _history_payload(session)


@app.post("/history/close")
async def close_history(authorization: str | None = Header(default=None)):
    session = _require_session(authorization)
    session.close_history_panel()
    return session.modes.as_dict()


@app.post("/history/{item_id}/load")
async def load_history(item_id: str, authorization: str | None = Header(default=None)):
    session = _require_session(authorization)
    try:
        message = await session.load_history_item(item_id)
    except HistoryItemNotFound as exc:
        raise HTTPException(status_code=404, detail=f"Unknown history item: {item_id}") from exc
    return {"message": message_to_dict(message), **session.state()}


@app.get("/providers/nearby")
def providers_nearby(
    lat: float | None = Query(default=None),
    lng: float | None = Query(default=None),
    radius_km: float = Query(default=5.0, gt=0),
    category: str = Query(default="hospital"),
    authorization: str | None = Header(default=None),
):
    get_user_id(authorization)
    origin = Origin(lat=lat, lng=lng) if lat is not None and lng is not None else None
    return container.discovery.find_providers(origin, category=category, radius_km=radius_km).as_dict()


@app.get("/profile")
async def get_profile(authorization: str | None = Header(default=None)):
    user_id = get_user_id(authorization)
    try:
        profile = container.store.load_profile(Identity(user_id=user_id))
    except ProfileNotFound:
        return {}
    return {"user_id": user_id, **profile.model_dump(mode="json"), "updated_at": to_iso(utc_now())}


@app.post("/profile")
async def upsert_profile(payload: dict[str, Any], authorization: str | None = Header(default=None)):
    user_id = get_user_id(authorization)
    session = container.sessions.get(user_id)
    identity = session.context.identity if session and session.context.identity else Identity(user_id=user_id)

    unknown = sorted(set(payload) - set(PROFILE_SECTIONS))
    if unknown:
        raise HTTPException(status_code=400, detail=f"Unknown profile sections: {', '.join(unknown)}")
    try:
        profile = container.store.load_profile(identity)
    except ProfileNotFound:
        profile = ProfileData.default_for(identity)

    updates: dict[str, Any] = {}
    try:
        for section, values in payload.items():
            current = getattr(profile, section)
            updates[section] = type(current).model_validate({**current.model_dump(), **(values or {})})
    except (ValidationError, TypeError) as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc

    for section, value in updates.items():
        container.store.save_section(identity, section, value)
    profile = profile.model_copy(update=updates)

    if session is not None:
        session.context.profile = profile
        if "medical_info" in updates:
            container.scheduler.cancel_user(user_id)
            container.scheduler.schedule_all(identity, profile.active_reminders())
    return {"ok": True, "sections": sorted(updates)}


@app.get("/notifications")
async def get_notifications(authorization: str | None = Header(default=None)):
    user_id = get_user_id(authorization)
    return {"items": [asdict(item) for item in container.notifications.drain(user_id)]}


@app.get("/health-data")
def health_data():
    return {
        "menu_options": list(MAIN_MENU_OPTIONS),
        "symptoms": [asdict(symptom) for symptom in SYMPTOMS],
        "health_tips": list(HEALTH_TIPS),
        "faqs": [asdict(faq) for faq in HEALTH_FAQS],
        "appointment_slots": [asdict(slot) for slot in AVAILABLE_APPOINTMENTS],
    }
