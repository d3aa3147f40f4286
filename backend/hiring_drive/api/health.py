"""Health check endpoints."""

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
async def health(request: Request) -> dict[str, str]:
    """Return service health and the configured store backend."""
    store = getattr(request.app.state, "store", None)
    return {"status": "ok", "store": type(store).__name__ if store else "none"}
