from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..db import get_engine
from ..engine import Engine
from ..logs import search_logs

router = APIRouter()


@router.get("/api/logs/search")
async def api_logs_search(
    q: Optional[str] = None,
    action: Optional[str] = None,
    ts_from: Optional[str] = None,
    ts_to: Optional[str] = None,
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=200),
    engine: Engine = Depends(get_engine),
):
    total, items = search_logs(engine, q, action, ts_from, ts_to, page, size)
    return {"total": total, "items": items}
