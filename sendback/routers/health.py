# sendback/routers/health.py
from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])


@router.get("/health")
def health(request: Request):
    return {"ok": True, "env": request.app.state.settings.ENV}
