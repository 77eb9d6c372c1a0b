from __future__ import annotations

import os
from pathlib import Path

from fastapi import FastAPI
from fastapi.openapi.utils import get_openapi
from fastapi.templating import Jinja2Templates

from ..features.session import SessionManager, create_session_routers

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"


def create_app(manager: SessionManager | None = None) -> FastAPI:
    """Build the HTTP surface around one in-process :class:`SessionManager`."""

    application = FastAPI(title="Voltage Wars")
    application.state.manager = manager or SessionManager()
    templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
    application.include_router(create_session_routers(application.state.manager, templates))

    @application.get("/healthz")
    def healthz() -> dict[str, str]:
        return {"status": "ok"}

    def _custom_openapi() -> dict[str, object]:  # pragma: no cover - exercised via docs
        if application.openapi_schema:
            return application.openapi_schema
        schema = get_openapi(
            title=application.title,
            version="1.0.0",
            description="Battery duel match API",
            routes=application.routes,
        )
        application.openapi_schema = schema
        return schema

    application.openapi = _custom_openapi  # type: ignore[method-assign]
    return application


app = create_app()


def main() -> None:  # pragma: no cover - runner
    import uvicorn

    host = os.environ.get("BIND", "0.0.0.0")
    port = int(os.environ.get("PORT", "8000"))
    uvicorn.run(app, host=host, port=port, factory=False)


if __name__ == "__main__":  # pragma: no cover
    main()
