"""Health check endpoint."""

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
def health_check(request: Request) -> dict[str, str | int]:
    """Return application and content health status."""
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        return {"status": "error", "content": "not loaded"}

    return {
        "status": "ok",
        "content": "loaded",
        "trees": engine.registry.count(),
        "ai_provider": engine.ai_provider.name if engine.ai_provider else "none",
    }
