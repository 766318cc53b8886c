import logging
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...dependencies import get_db

router = APIRouter(prefix="/health", tags=["health"])
logger = logging.getLogger(__name__)


@router.get("/ready")
def ready(db: Session = Depends(get_db)):
    """Listo si la base de datos responde"""
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"Health check: base de datos no disponible: {e}")
        raise HTTPException(status_code=503, detail="Base de datos no disponible")
    return {"status": "ok"}
