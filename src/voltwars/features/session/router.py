from __future__ import annotations

import json
from collections.abc import Callable
from typing import TypeVar

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse, Response
from fastapi.templating import Jinja2Templates
from pydantic import BaseModel, model_validator

from ...core.chemistry import CellConfig, Metal
from ...core.models import EffectPayload, TargetScope
from ...engine.phases import Phase
from ...engine.timer import DEFAULT_PHASE_SECONDS
from .schemas import MatchPayload, SummaryPayload
from .service import SessionConfig, SessionManager

__all__ = [
    "AssemblyRequest",
    "CreateMatchRequest",
    "DrawRequest",
    "PlayRequest",
    "TeamRequest",
    "TimeoutRequest",
    "WiringRequest",
    "create_session_routers",
]

T = TypeVar("T")

_HX_HEADER = "HX-Request"
_MAX_PHASE_SECONDS = 600.0


def _metal_or_none(value: object) -> object:
    if value in (None, ""):
        return None
    if isinstance(value, str):
        for metal in Metal:
            if metal.value.lower() == value.strip().lower():
                return metal.value
    return value


class CreateMatchRequest(BaseModel):
    team_a: str | None = None
    team_b: str | None = None
    seed: int | None = None
    phase_seconds: float | None = None

    @model_validator(mode="before")
    @classmethod
    def _coerce(cls, data: dict[str, object]) -> dict[str, object]:
        if not isinstance(data, dict):
            return data
        cleaned: dict[str, object] = dict(data)
        for field, cast in (("seed", int), ("phase_seconds", float)):
            value = cleaned.get(field)
            if value in (None, ""):
                cleaned[field] = None
                continue
            if isinstance(value, str):
                try:
                    cleaned[field] = cast(value)
                except ValueError:
                    cleaned[field] = None
        return cleaned

    @model_validator(mode="after")
    def _normalize(self) -> CreateMatchRequest:
        seconds = self.phase_seconds if self.phase_seconds is not None else DEFAULT_PHASE_SECONDS
        self.phase_seconds = min(max(seconds, 0.0), _MAX_PHASE_SECONDS)
        return self


class TeamRequest(BaseModel):
    team: int

    @model_validator(mode="after")
    def _check_team(self) -> TeamRequest:
        if self.team not in (0, 1):
            raise ValueError("team must be 0 or 1")
        return self


class DrawRequest(TeamRequest):
    hand: list[str] | None = None

    @model_validator(mode="before")
    @classmethod
    def _coerce(cls, data: dict[str, object]) -> dict[str, object]:
        if not isinstance(data, dict):
            return data
        cleaned: dict[str, object] = dict(data)
        hand = cleaned.get("hand")
        if isinstance(hand, list):
            cleaned["hand"] = [_metal_or_none(item) for item in hand]
        return cleaned


class CellRequest(BaseModel):
    left: str | None = None
    right: str | None = None
    flipped: bool = False

    @model_validator(mode="before")
    @classmethod
    def _coerce(cls, data: dict[str, object]) -> dict[str, object]:
        if not isinstance(data, dict):
            return data
        cleaned: dict[str, object] = dict(data)
        for field in ("left", "right"):
            cleaned[field] = _metal_or_none(cleaned.get(field))
        return cleaned

    def to_cell(self, cell_id: int) -> CellConfig:
        try:
            left = Metal(self.left) if self.left is not None else None
            right = Metal(self.right) if self.right is not None else None
        except ValueError as exc:
            raise HTTPException(400, str(exc)) from exc
        return CellConfig(cell_id, left, right, self.flipped)


class AssemblyRequest(TeamRequest):
    hand: list[str] = []
    cell1: CellRequest = CellRequest()
    cell2: CellRequest = CellRequest()
    # Stage the draft without locking it in; a timeout commits the draft.
    draft: bool = False


class WiringRequest(TeamRequest):
    wires: list[tuple[str, str]] = []


class PlayRequest(TeamRequest):
    card_id: str
    scope: str | None = None
    cell_id: int | None = None
    slot: str | None = None
    new_metal: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _coerce(cls, data: dict[str, object]) -> dict[str, object]:
        if not isinstance(data, dict):
            return data
        cleaned: dict[str, object] = dict(data)
        scope = cleaned.get("scope")
        cleaned["scope"] = scope.strip().upper() if isinstance(scope, str) and scope.strip() else None
        slot = cleaned.get("slot")
        cleaned["slot"] = slot.strip().upper() if isinstance(slot, str) and slot.strip() else None
        cleaned["new_metal"] = _metal_or_none(cleaned.get("new_metal"))
        return cleaned

    def effect_payload(self) -> EffectPayload | None:
        if self.cell_id is None:
            return None
        try:
            metal = Metal(self.new_metal) if self.new_metal is not None else None
        except ValueError as exc:
            raise HTTPException(400, str(exc)) from exc
        return EffectPayload(cell_id=self.cell_id, slot=self.slot, new_metal=metal)

    def target_scope(self) -> TargetScope | None:
        if self.scope is None:
            return None
        try:
            return TargetScope(self.scope)
        except ValueError as exc:
            raise HTTPException(400, f"unknown scope {self.scope!r}") from exc


class TimeoutRequest(BaseModel):
    phase: str | None = None

    def expected_phase(self) -> Phase | None:
        if not self.phase:
            return None
        try:
            return Phase(self.phase)
        except ValueError as exc:
            raise HTTPException(400, f"unknown phase {self.phase!r}") from exc


class _MatchController:
    def __init__(self, manager: SessionManager, templates: Jinja2Templates | None) -> None:
        self.manager = manager
        self.templates = templates

    # ------------------------------------------------------------------ helpers
    def _is_hx(self, request: Request) -> bool:
        return self.templates is not None and request.headers.get(_HX_HEADER, "").lower() == "true"

    def _json_response(self, data: dict[str, object]) -> JSONResponse:
        response = JSONResponse(data)
        response.headers.setdefault("Vary", _HX_HEADER)
        return response

    def _template_response(
        self,
        request: Request,
        template: str,
        context: dict[str, object],
        *,
        trigger: dict[str, str] | None = None,
    ) -> Response:
        assert self.templates is not None
        headers: dict[str, str] = {"Vary": _HX_HEADER}
        if trigger:
            headers["HX-Trigger"] = json.dumps(trigger)
        return self.templates.TemplateResponse(
            request,
            template,
            {**context, "request": request},
            headers=headers,
        )

    def _state_response(self, request: Request, payload: MatchPayload, *, created: bool = False) -> Response:
        if self._is_hx(request):
            trigger = {"matchCreated" if created else "matchUpdated": payload.session}
            return self._template_response(request, "session/state.html", {"match": payload}, trigger=trigger)
        return self._json_response(payload.to_dict())

    def _summary_response(self, request: Request, summary: SummaryPayload) -> Response:
        if self._is_hx(request):
            return self._template_response(request, "session/summary.html", {"summary": summary})
        return self._json_response(summary.to_dict())

    async def _run(self, method: Callable[..., T], /, *args: object) -> T:
        try:
            return await self.manager.dispatch_async(method, *args)
        except KeyError as exc:
            raise HTTPException(404, str(exc)) from exc
        except ValueError as exc:
            raise HTTPException(400, str(exc)) from exc

    # ------------------------------------------------------------------ actions
    async def create(self, request: Request, body: CreateMatchRequest) -> Response:
        session_id = await self.manager.create_session_async(
            SessionConfig(
                team_names=(body.team_a or "", body.team_b or ""),
                seed=body.seed,
                phase_seconds=body.phase_seconds if body.phase_seconds is not None else DEFAULT_PHASE_SECONDS,
            )
        )
        if self._is_hx(request):
            payload = await self._run(self.manager.get_state, session_id)
            return self._state_response(request, payload, created=True)
        return self._json_response({"session": session_id})

    async def state(
        self, request: Request, sid: str, method: Callable[..., MatchPayload], *args: object
    ) -> Response:
        payload = await self._run(method, sid, *args)
        return self._state_response(request, payload)

    async def assembly(self, request: Request, sid: str, body: AssemblyRequest) -> Response:
        method = self.manager.stage_assembly if body.draft else self.manager.submit_assembly
        return await self.state(request, sid, method, body.team, body.hand, body.cell1.to_cell(1), body.cell2.to_cell(2))

    async def play(self, request: Request, sid: str, body: PlayRequest) -> Response:
        return await self.state(
            request,
            sid,
            self.manager.play_card,
            body.team,
            body.card_id,
            body.target_scope(),
            body.effect_payload(),
        )

    async def summary(self, request: Request, sid: str) -> Response:
        summary = await self._run(self.manager.summary, sid)
        return self._summary_response(request, summary)

    async def commentary(self, sid: str) -> Response:
        payload = await self._run(self.manager.commentary, sid)
        return self._json_response(payload.to_dict())


def create_session_routers(
    manager: SessionManager,
    templates: Jinja2Templates | None = None,
) -> APIRouter:
    controller = _MatchController(manager, templates)
    router = APIRouter(prefix="/api/v1/match", tags=["match"])

    @router.post("")
    async def create_match(request: Request, body: CreateMatchRequest) -> Response:
        return await controller.create(request, body)

    @router.get("/{sid}")
    async def get_match(request: Request, sid: str) -> Response:
        return await controller.state(request, sid, manager.get_state)

    @router.post("/{sid}/start")
    async def start_match(request: Request, sid: str) -> Response:
        return await controller.state(request, sid, manager.start)

    @router.post("/{sid}/reveal")
    async def reveal_hand(request: Request, sid: str, body: TeamRequest) -> Response:
        return await controller.state(request, sid, manager.reveal, body.team)

    @router.post("/{sid}/draw")
    async def draw_hand(request: Request, sid: str, body: DrawRequest) -> Response:
        return await controller.state(request, sid, manager.draw, body.team, body.hand)

    @router.post("/{sid}/assembly")
    async def submit_assembly(request: Request, sid: str, body: AssemblyRequest) -> Response:
        return await controller.assembly(request, sid, body)

    @router.post("/{sid}/wiring")
    async def update_wiring(request: Request, sid: str, body: WiringRequest) -> Response:
        return await controller.state(request, sid, manager.update_wiring, body.team, body.wires)

    @router.post("/{sid}/wiring/confirm")
    async def confirm_wiring(request: Request, sid: str, body: TeamRequest) -> Response:
        return await controller.state(request, sid, manager.confirm_wiring, body.team)

    @router.post("/{sid}/chance")
    async def draw_chance(request: Request, sid: str) -> Response:
        return await controller.state(request, sid, manager.draw_chance)

    @router.post("/{sid}/play")
    async def play_card(request: Request, sid: str, body: PlayRequest) -> Response:
        return await controller.play(request, sid, body)

    @router.post("/{sid}/skip")
    async def skip_turn(request: Request, sid: str) -> Response:
        return await controller.state(request, sid, manager.skip)

    @router.post("/{sid}/timeout")
    async def force_timeout(request: Request, sid: str, body: TimeoutRequest | None = None) -> Response:
        phase = body.expected_phase() if body is not None else None
        return await controller.state(request, sid, manager.timeout, phase)

    @router.post("/{sid}/next-round")
    async def next_round(request: Request, sid: str) -> Response:
        return await controller.state(request, sid, manager.next_round)

    @router.get("/{sid}/summary")
    async def get_summary(request: Request, sid: str) -> Response:
        return await controller.summary(request, sid)

    @router.get("/{sid}/commentary")
    async def get_commentary(sid: str) -> Response:
        return await controller.commentary(sid)

    return router
