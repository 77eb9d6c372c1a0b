"""Optional remote instruction generator with a static fallback.

The remote path talks to any OpenAI-compatible ``/chat/completions`` endpoint
and expects a JSON object with ``zh``, ``en`` and ``ja`` keys back.  Every
failure (flag off, no endpoint configured, transport error, bad status,
malformed body) is logged and answered from :func:`phase_instruction`, so
callers never see an exception from this module.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Final

import httpx

from ...core import feature_flags
from ...core.models import LocalizedText, Team
from ...engine.phases import Phase
from .instructions import phase_instruction

__all__ = ["CommentaryConfig", "CommentaryGenerator", "build_prompt"]

logger = logging.getLogger(__name__)

URL_ENV: Final = "VOLTWARS_COMMENTARY_URL"
KEY_ENV: Final = "VOLTWARS_COMMENTARY_KEY"
MODEL_ENV: Final = "VOLTWARS_COMMENTARY_MODEL"
DEFAULT_MODEL: Final = "auto"


@dataclass(frozen=True)
class CommentaryConfig:
    base_url: str | None = None
    api_key: str | None = None
    model: str = DEFAULT_MODEL
    timeout: float = 8.0

    @classmethod
    def from_env(cls) -> CommentaryConfig:
        base = (os.getenv(URL_ENV) or "").strip() or None
        key = (os.getenv(KEY_ENV) or "").strip() or None
        model = (os.getenv(MODEL_ENV) or "").strip() or DEFAULT_MODEL
        return cls(base_url=base, api_key=key, model=model)


def build_prompt(teams: Sequence[Team], last_action: str) -> str:
    ranked = sorted(teams, key=lambda team: abs(team.total_voltage), reverse=True)
    leaderboard = ", ".join(f"{team.name}: {abs(team.total_voltage):.2f}V" for team in ranked)
    return (
        'You are the "Voltage Wars" game instructor.\n\n'
        f"Current leaderboard (magnitude): {leaderboard}\n"
        f"Recent event/phase: {last_action}\n\n"
        "Give one concise instruction telling the players what to do next. "
        "Be a rule guide, not a colour commentator.\n"
        "Reply strictly as a JSON object with 'zh', 'en' and 'ja' keys."
    )


def _parse_reply(data: Any) -> LocalizedText:
    choices = data.get("choices") if isinstance(data, dict) else None
    if not choices:
        raise ValueError("response has no choices")
    message = choices[0].get("message") or {}
    content = message.get("content")
    if not isinstance(content, str) or not content.strip():
        raise ValueError("response has no content")
    parsed = json.loads(content)
    if not isinstance(parsed, dict):
        raise ValueError("content is not a JSON object")
    en = parsed.get("en")
    if not isinstance(en, str) or not en.strip():
        raise ValueError("content has no 'en' text")
    zh = parsed.get("zh") if isinstance(parsed.get("zh"), str) else None
    ja = parsed.get("ja") if isinstance(parsed.get("ja"), str) else None
    return LocalizedText(zh=zh or en, en=en, ja=ja or en)


class CommentaryGenerator:
    def __init__(self, config: CommentaryConfig | None = None, *, client: httpx.Client | None = None) -> None:
        self.config = config or CommentaryConfig.from_env()
        self._client = client

    @property
    def available(self) -> bool:
        return feature_flags.is_enabled(feature_flags.COMMENTARY_REMOTE) and bool(self.config.base_url)

    def generate(
        self,
        teams: Sequence[Team],
        last_action: str,
        *,
        phase: Phase,
        team_name: str | None = None,
    ) -> LocalizedText:
        fallback = phase_instruction(phase, team_name)
        if not self.available:
            return fallback
        try:
            return self._request(build_prompt(teams, last_action))
        except Exception as exc:
            logger.warning(
                "commentary request failed; using static instruction",
                extra={"phase": phase.value, "error": f"{type(exc).__name__}: {exc}"},
            )
            return fallback

    def _request(self, prompt: str) -> LocalizedText:
        base = (self.config.base_url or "").rstrip("/")
        headers = {"Authorization": f"Bearer {self.config.api_key}"} if self.config.api_key else {}
        payload = {
            "model": self.config.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": 0.2,
            "response_format": {"type": "json_object"},
            "stream": False,
        }
        if self._client is not None:
            response = self._client.post(f"{base}/chat/completions", json=payload, headers=headers)
        else:
            with httpx.Client(timeout=self.config.timeout) as client:
                response = client.post(f"{base}/chat/completions", json=payload, headers=headers)
        response.raise_for_status()
        return _parse_reply(response.json())
