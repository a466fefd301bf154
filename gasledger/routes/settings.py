from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from ..db import get_engine
from ..engine import Engine
from ..logs import LogContext
from ..services.config_svc import MIGRATION_DONE_KEY, all_settings, update_settings

router = APIRouter()

# managed by the importer, not editable from the API
PROTECTED_KEYS = {MIGRATION_DONE_KEY}


@router.get("/api/settings/get")
async def api_settings_get(engine: Engine = Depends(get_engine)):
    return {k: v for k, v in all_settings(engine).items() if k not in PROTECTED_KEYS}


class SettingsUpdateBody(BaseModel):
    updates: dict[str, str]


@router.post("/api/settings/update")
async def api_settings_update(body: SettingsUpdateBody, engine: Engine = Depends(get_engine)):
    log = LogContext("SETTINGS_UPDATE")
    log.set_payload(body.model_dump())
    bad = PROTECTED_KEYS.intersection(body.updates)
    if bad or not body.updates:
        err = f"cannot update: {', '.join(sorted(bad))}" if bad else "no updates given"
        await log.write(engine, "ERROR", err)
        raise HTTPException(status_code=400, detail=err)
    updated_keys = await update_settings(engine, body.updates, log)
    await log.write(engine, "OK")
    return {"message": "ok", "updated": updated_keys}
