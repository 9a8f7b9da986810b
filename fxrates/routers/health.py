from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])


@router.get("/health", summary="Liveness and rate freshness")
async def health(request: Request):
    state = request.app.state
    scheduler = getattr(state, "scheduler", None)
    return {
        "status": "ok",
        "version": state.settings.version,
        "pivot_currency": state.rate_service.pivot,
        "latest_rate_date": state.db.latest_rate_date(state.rate_service.pivot),
        "scheduler_running": bool(scheduler and scheduler.running),
    }
