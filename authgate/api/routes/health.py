from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Liveness probe for load balancers; never rate limited.

    Returns:
        dict: ``status`` set to "ok" and the current UTC ``timestamp``.
    """

    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}
