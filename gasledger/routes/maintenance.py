from __future__ import annotations

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile
from fastapi.responses import Response

from ..db import get_engine
from ..engine import Engine
from ..errors import InvalidSnapshot
from ..logs import LogContext
from ..services.backup_svc import export_backup, restore_backup
from ..services.migrate_svc import migration_status

router = APIRouter()


@router.post("/api/backup")
async def api_backup(engine: Engine = Depends(get_engine)):
    filename, data = export_backup(engine)
    return Response(
        content=data,
        media_type="application/octet-stream",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@router.post("/api/restore")
async def api_restore(file: UploadFile = File(...), engine: Engine = Depends(get_engine)):
    log = LogContext("RESTORE_SNAPSHOT")
    log.set_payload({"filename": file.filename})
    content = await file.read()
    try:
        res = await restore_backup(engine, content, log)
    except InvalidSnapshot as e:
        await log.write(engine, "ERROR", str(e))
        raise HTTPException(status_code=400, detail=f"Invalid backup file: {e}")
    await log.write(engine, "OK")
    return res


@router.post("/api/migrate")
async def api_migrate(request: Request):
    importer = request.app.state.importer
    res = await importer.run()
    return res.to_dict()


@router.get("/api/migrate/status")
async def api_migrate_status(engine: Engine = Depends(get_engine)):
    return migration_status(engine)
