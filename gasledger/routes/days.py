from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from ..db import get_engine
from ..engine import Engine
from ..errors import TransactionFailure
from ..logs import LogContext
from ..services import sales_svc

router = APIRouter()


class SaleCreate(BaseModel):
    kg: float = Field(0.0, ge=0)
    price: Optional[float] = Field(None, ge=0)
    comments: str = ""


class SaleUpdate(BaseModel):
    kg: Optional[float] = Field(None, ge=0)
    price: Optional[float] = Field(None, ge=0)
    comments: Optional[str] = None


class DayUpdate(BaseModel):
    unit_price: Optional[float] = Field(None, ge=0)
    opening_stock: Optional[float] = Field(None, ge=0)


def _day_payload(engine: Engine, day: dict) -> dict:
    return {
        "day": day,
        "totals": sales_svc.get_day_totals(engine, day["id"]),
        "sales": sales_svc.list_sales(engine, day["id"]),
    }


def _day_or_404(engine: Engine, day_id: int) -> dict:
    day = sales_svc.get_day_by_id(engine, day_id)
    if day is None:
        raise HTTPException(status_code=404, detail=f"day {day_id} not found")
    return day


@router.get("/api/day/today")
async def api_day_today(engine: Engine = Depends(get_engine)):
    day = await sales_svc.get_or_create_today(engine)
    return _day_payload(engine, day)


@router.get("/api/day/{day_id}")
async def api_day_get(day_id: int, engine: Engine = Depends(get_engine)):
    return _day_payload(engine, _day_or_404(engine, day_id))


@router.patch("/api/day/{day_id}")
async def api_day_update(day_id: int, body: DayUpdate, engine: Engine = Depends(get_engine)):
    _day_or_404(engine, day_id)
    if body.unit_price is not None:
        await sales_svc.update_unit_price(engine, day_id, body.unit_price)
    if body.opening_stock is not None:
        await sales_svc.update_opening_stock(engine, day_id, body.opening_stock)
    return _day_payload(engine, _day_or_404(engine, day_id))


@router.delete("/api/day/{day_id}")
async def api_day_delete(day_id: int, engine: Engine = Depends(get_engine)):
    log = LogContext("DAY_DELETE")
    log.set_entity("day", str(day_id))
    log.set_before(sales_svc.get_day_totals(engine, day_id))
    if not await sales_svc.delete_day(engine, day_id):
        raise HTTPException(status_code=404, detail=f"day {day_id} not found")
    await log.write(engine, "OK")
    return {"message": "ok"}


@router.get("/api/day/{day_id}/sales")
async def api_sales_list(day_id: int, engine: Engine = Depends(get_engine)):
    _day_or_404(engine, day_id)
    return {"items": sales_svc.list_sales(engine, day_id)}


@router.post("/api/day/{day_id}/sales", status_code=201)
async def api_sales_add(day_id: int, body: SaleCreate, engine: Engine = Depends(get_engine)):
    _day_or_404(engine, day_id)
    try:
        sale = await sales_svc.add_sale(engine, day_id, body.kg, body.price, body.comments)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"message": "ok", "sale": sale}


@router.patch("/api/sales/{sale_id}")
async def api_sales_update(sale_id: int, body: SaleUpdate, engine: Engine = Depends(get_engine)):
    try:
        changed = await sales_svc.update_sale(engine, sale_id, body.kg, body.price, body.comments)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"message": "ok", "changed": changed}


@router.delete("/api/sales/{sale_id}")
async def api_sales_delete(sale_id: int, engine: Engine = Depends(get_engine)):
    try:
        deleted = await sales_svc.delete_sale(engine, sale_id)
    except TransactionFailure as e:
        raise HTTPException(status_code=500, detail=f"delete failed: {e.cause}")
    if not deleted:
        raise HTTPException(status_code=404, detail=f"sale {sale_id} not found")
    return {"message": "ok"}


@router.get("/api/history")
async def api_history(engine: Engine = Depends(get_engine)):
    return {"items": sales_svc.get_history(engine)}
