from fastapi import APIRouter, Request

router = APIRouter(tags=["meta"])


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/config/firebase")
def firebase_config(request: Request):
    """
    Public Firebase web config for clients. Unauthenticated: these values
    identify the project, they are not secrets.
    """
    settings = request.app.state.settings
    return {"success": True, "config": settings.firebase_public_config()}
