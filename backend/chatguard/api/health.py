"""
Health check endpoint.
"""
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session
import logging
from chatguard.api.deps import get_vector_db
from chatguard.core.clock import utc_now
from chatguard.core.database import get_db
from chatguard.services.rag import VectorDB

logger = logging.getLogger(__name__)

router = APIRouter()


def _vector_store_status(vector_db: VectorDB) -> dict:
    """Vector store state; never fails the health check."""
    if not vector_db.is_configured:
        return {"status": "not_configured"}
    try:
        return {"status": "connected", "vectors": vector_db.count()}
    except Exception as e:
        logger.warning(f"Vector store health check failed: {e}")
        return {"status": "unavailable"}


@router.get("/health")
def health(
    db: Session = Depends(get_db),
    vector_db: VectorDB = Depends(get_vector_db),
):
    """Report service, database and vector store availability."""
    timestamp = utc_now().isoformat()
    vector_store = _vector_store_status(vector_db)
    try:
        db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        return JSONResponse(
            status_code=503,
            content={
                "status": "unhealthy",
                "timestamp": timestamp,
                "database": "disconnected",
                "vectorStore": vector_store,
                "error": "Database connection failed",
            },
        )

    return {"status": "healthy", "timestamp": timestamp, "database": "connected", "vectorStore": vector_store}
