"""Status, session and tool endpoints."""

import os
from typing import Any, Dict

from fastapi import APIRouter, Body, Request

from curupira.app import CurupiraApp

router = APIRouter()


def _app(request: Request) -> CurupiraApp:
    return request.app.state.curupira


@router.get("/health")
async def health_check() -> Dict[str, Any]:
    """Quick liveness probe."""
    return {"status": "ok", "pid": os.getpid()}


@router.get("/status")
async def get_status(request: Request) -> Dict[str, Any]:
    """Browser connection, sessions and buffered event count."""
    app = _app(request)
    return {**app.browser.status(), "events": app.store.count(), "tools": len(app.registry)}


@router.get("/sessions")
async def get_sessions(request: Request) -> Dict[str, Any]:
    sessions = _app(request).browser.sessions.list_sessions()
    return {"sessions": [s.to_dict() for s in sessions]}


@router.get("/tools")
async def list_tools(request: Request) -> Dict[str, Any]:
    tools = _app(request).registry.list_tools()
    return {"tools": tools, "count": len(tools)}


@router.post("/tools/{name}")
async def call_tool(
    name: str,
    request: Request,
    arguments: Dict[str, Any] | None = Body(default=None),
) -> Dict[str, Any]:
    """Run one tool. Failures come back as success=false, never as HTTP errors."""
    result = await _app(request).registry.call(name, arguments or {})
    return result.to_dict()
