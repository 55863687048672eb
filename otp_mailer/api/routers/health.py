from datetime import datetime, timezone

from fastapi import APIRouter, Request

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
async def health(request: Request):
    # no dependency checks; always 200
    return {
        "status": "OK",
        "service": request.app.state.settings.APP_NAME,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/readiness")
async def readiness(request: Request):
    mail_ok = request.app.state.settings.mail_configured
    return {"ready": mail_ok, "mail_configured": mail_ok}


@router.get("/liveness")
async def liveness():
    return {"alive": True}
