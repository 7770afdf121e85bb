from fastapi import APIRouter, HTTPException, Request


def build_tasks_routes() -> APIRouter:
    router = APIRouter()

    @router.get("/api/tasks")
    async def list_tasks(request: Request):
        tracker = request.app.state.tracker
        return {"tasks": [tracked.to_dict() for tracked in tracker.active()]}

    @router.delete("/api/tasks/{key}")
    async def cancel_task(key: str, request: Request):
        tracker = request.app.state.tracker
        cancelled = tracker.cancel(key)
        if not cancelled:
            raise HTTPException(status_code=404, detail=f"No running task: {key}")
        return {"key": key, "cancelled": cancelled}

    return router


__all__ = ["build_tasks_routes"]
