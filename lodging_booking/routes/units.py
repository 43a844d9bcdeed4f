from typing import Any, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.engine import Engine

from lodging_booking.db.readers.units import get_unit, list_units
from lodging_booking.dependencies import get_db_engine
from lodging_booking.schemas.units import UnitOut

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.get("/units", response_model=list[UnitOut])
def list_units_endpoint(
    unit_type: Optional[str] = Query(None, description="Case-insensitive unit type"),
    min_capacity: Optional[int] = Query(None, ge=1, description="Minimum guest capacity"),
    engine: Engine = Depends(get_db_engine),
) -> list[dict[str, Any]]:
    """
    List the unit catalog, optionally filtered by type and capacity.
    """
    try:
        with engine.connect() as conn:
            return list_units(conn, unit_type=unit_type, min_capacity=min_capacity)
    except Exception as e:
        logger.exception("unit_list_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/units/{unit_id}", response_model=UnitOut)
def get_unit_endpoint(unit_id: int, engine: Engine = Depends(get_db_engine)) -> dict[str, Any]:
    try:
        with engine.connect() as conn:
            unit = get_unit(conn, unit_id)
        if unit is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Unit {unit_id} not found",
            )
        return unit
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("unit_fetch_failed", unit_id=unit_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")
