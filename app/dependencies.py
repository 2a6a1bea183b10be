"""Shared FastAPI dependencies for the orchestrator and external clients."""
from __future__ import annotations

from fastapi import Request

from app.config import Settings, get_settings
from app.integrations import Integrations, build_integrations
from app.services.jobs import build_default_registry, make_context_factory
from app.services.orchestrator import Orchestrator


def build_orchestrator(settings: Settings, integrations: Integrations) -> Orchestrator:
    return Orchestrator(
        build_default_registry(),
        context_factory=make_context_factory(settings, integrations),
        settings=settings,
    )


def get_integrations(request: Request) -> Integrations:
    """Clients built once per application and kept on ``app.state``."""

    integrations = getattr(request.app.state, "integrations", None)
    if integrations is None:
        integrations = build_integrations(get_settings())
        request.app.state.integrations = integrations
    return integrations


def get_orchestrator(request: Request) -> Orchestrator:
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        orchestrator = build_orchestrator(get_settings(), get_integrations(request))
        request.app.state.orchestrator = orchestrator
    return orchestrator


__all__ = ["build_orchestrator", "get_integrations", "get_orchestrator"]
