from fastapi import Request

from orchestrator.orchestrator_manager import OrchestratorManager


def get_manager(request: Request) -> OrchestratorManager:
    """Components are built once in the lifespan and shared by every request."""
    return request.app.state.manager
