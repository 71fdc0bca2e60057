"""Jinja2 environment shared by the website routers."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from fastapi import Request
from fastapi.templating import Jinja2Templates
from starlette.responses import Response

from tilapp.db.models.user import User

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"

templates = Jinja2Templates(directory=TEMPLATES_DIR)


def render(
    request: Request,
    name: str,
    *,
    user: User | None = None,
    status_code: int = 200,
    **context: Any,
) -> Response:
    """Render ``name`` with the logged-in user available to the layout."""
    context.setdefault("title", "TIL")
    context["current_user"] = user
    context["user_logged_in"] = user is not None
    return templates.TemplateResponse(request, name, context, status_code=status_code)
