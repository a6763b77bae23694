"""Health check endpoints.

- /healthz: Liveness probe (is the process alive?)
- /readyz: Readiness probe (is the service ready to accept traffic?)
- /health: Combined view including the session state
- /metrics: Prometheus metrics endpoint
"""

from typing import Any

from fastapi import APIRouter, Response, status
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter(tags=["health"])


# Health status tracking
_ready: bool = False
_components: dict[str, bool] = {
    "orchestrator": False,
    "avatar": False,
    "assistant": False,
}

CRITICAL_COMPONENTS = ["orchestrator", "avatar"]


def set_ready(ready: bool) -> None:
    """Set overall readiness status."""
    global _ready
    _ready = ready


def set_component_health(component: str, healthy: bool) -> None:
    """Set health status for a specific component."""
    if component in _components:
        _components[component] = healthy


def get_component_health() -> dict[str, bool]:
    """Get health status of all components."""
    return _components.copy()


def _critical_ready() -> bool:
    return _ready and all(_components.get(c, False) for c in CRITICAL_COMPONENTS)


@router.get("/healthz", response_model=dict[str, str])
async def healthz() -> dict[str, str]:
    """Liveness probe.

    Returns 200 if the process is alive.
    """
    return {"status": "alive"}


@router.get("/readyz")
async def readyz(response: Response) -> dict[str, Any]:
    """Readiness probe.

    Returns 503 until startup finished and the critical components are up.
    The assistant is optional (direct speak mode works without it).
    """
    if _critical_ready():
        return {"status": "ready", "components": _components}

    response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return {"status": "not_ready", "components": _components}


@router.get("/health")
async def health(response: Response) -> dict[str, Any]:
    """Combined health endpoint."""
    from src.api.routes.session import get_orchestrator

    ready = _critical_ready()
    if not ready:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    body: dict[str, Any] = {
        "status": "healthy" if ready else "degraded",
        "ready": _ready,
        "components": _components,
    }
    if _ready:
        body["session_state"] = get_orchestrator().state.value
    return body


@router.get("/metrics")
async def metrics() -> Response:
    """Prometheus metrics in text exposition format."""
    from src.config.settings import get_settings

    if not get_settings().metrics_enabled:
        return Response(status_code=status.HTTP_404_NOT_FOUND)
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
