from fastapi import APIRouter

from .. import __version__

router = APIRouter()

APP_NAME = "gasledger-api"


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/version")
def version():
    return {"app": APP_NAME, "version": __version__}
