"""
FastAPI Application for the Change-Feed Traversal Engine

This API provides endpoints for:
1. Starting a traversal from the configured start date
2. Resuming a traversal from a checkpoint
3. Adjusting the traversal batch size
"""

import logging
import threading
from typing import Optional, Dict, Any, List
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
from dotenv import load_dotenv

from config import get_config
from crawl_changes import build_traversal_manager
from database import get_rdbms_connector, reset_connectors
from traversal import (
    CandidateRegressionError,
    InvalidArgumentError,
    InvalidCursorError,
    QueryExecutionError,
    TraversalBatch,
    TraversalManager
)

# Load environment variables
load_dotenv()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Global state; calls on one manager are serialized
traversal_manager_instance: Optional[TraversalManager] = None
traversal_lock = threading.Lock()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize and cleanup resources"""
    logger.info("🚀 Starting FastAPI application...")
    yield
    logger.info("🛑 Shutting down FastAPI application...")
    reset_connectors()


app = FastAPI(
    title="Change-Feed Traversal API",
    description="API for ordered, resumable traversal of changed and deleted records",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ==================== Pydantic Models ====================

class TraversalRequest(BaseModel):
    """Request model for a traversal call"""
    checkpoint: Optional[str] = Field(
        default=None,
        description="Checkpoint returned by the previous call; omit to start over"
    )
    batch_hint: Optional[int] = Field(
        default=None,
        description="Batch size hint applied before the call"
    )


class DeleteModel(BaseModel):
    """A deleted record"""
    data_id: int
    audit_date: datetime
    event_id: Optional[int] = None


class TraversalResponse(BaseModel):
    """Response model for a traversal call"""
    status: str = Field(..., description="batch, reschedule or no_changes")
    checkpoint: Optional[str] = None
    documents: List[Dict[str, Any]] = Field(default_factory=list)
    deletes: List[DeleteModel] = Field(default_factory=list)


class BatchHintRequest(BaseModel):
    """Request model for batch size changes"""
    hint: int = Field(..., description="Batch size; 0 restores the default")


class BatchHintResponse(BaseModel):
    """Response model for batch size changes"""
    batch_size: int


class HealthResponse(BaseModel):
    """Response model for health check"""
    status: str
    rdbms_connected: bool
    traversal_initialized: bool


# ==================== Helper Functions ====================

def get_traversal_manager() -> TraversalManager:
    """Get or create the traversal manager"""
    global traversal_manager_instance
    if traversal_manager_instance is None:
        config = get_config()
        try:
            config.validate()
        except ValueError as e:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Configuration error: {str(e)}"
            )
        traversal_manager_instance = build_traversal_manager(config)
    return traversal_manager_instance


def to_response(manager: TraversalManager, batch: Optional[TraversalBatch],
                checkpoint: Optional[str]) -> TraversalResponse:
    if batch is None:
        return TraversalResponse(status="no_changes", checkpoint=checkpoint)
    text = manager.checkpoint(batch)
    return TraversalResponse(
        status="reschedule" if batch.is_empty else "batch",
        checkpoint=text,
        documents=batch.inserts,
        deletes=[DeleteModel(data_id=e.data_id, audit_date=e.audit_date, event_id=e.event_id)
                 for e in batch.deletes]
    )


def run_traversal(request: TraversalRequest, start: bool) -> TraversalResponse:
    manager = get_traversal_manager()
    try:
        with traversal_lock:
            if request.batch_hint is not None:
                manager.set_batch_hint(request.batch_hint)
            if start:
                batch = manager.start_traversal()
            else:
                batch = manager.resume_traversal(request.checkpoint)
            return to_response(manager, batch, request.checkpoint)
    except (InvalidCursorError, InvalidArgumentError) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except CandidateRegressionError as e:
        logger.error(f"Traversal regression detected: {e}")
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except QueryExecutionError as e:
        logger.error(f"Traversal query failed: {e}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))


# ==================== API Endpoints ====================

@app.get("/", response_model=Dict[str, str])
async def root():
    """Root endpoint with API information"""
    return {
        "message": "Change-Feed Traversal API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health"
    }


@app.get("/health", response_model=HealthResponse)
def health_check():
    """Health check endpoint"""
    rdbms_connected = False
    try:
        rdbms_connected = get_rdbms_connector(get_config().rdbms).test_connection()
    except Exception as e:
        logger.error(f"RDBMS health check failed: {e}")

    return HealthResponse(
        status="healthy" if rdbms_connected else "degraded",
        rdbms_connected=rdbms_connected,
        traversal_initialized=traversal_manager_instance is not None
    )


@app.post("/api/traversal/start", response_model=TraversalResponse)
def start_traversal(request: TraversalRequest):
    """
    Start a new traversal.

    Returns the first batch from the configured start date (or the
    beginning of the change order) and the checkpoint to resume from.
    """
    return run_traversal(request, start=True)


@app.post("/api/traversal/resume", response_model=TraversalResponse)
def resume_traversal(request: TraversalRequest):
    """
    Resume a traversal from a checkpoint.

    status is "batch" when changes are returned, "reschedule" when the
    checkpoint advanced without documents (call again immediately) and
    "no_changes" when nothing new is available (wait before retrying).
    """
    return run_traversal(request, start=False)


@app.put("/api/traversal/batch-hint", response_model=BatchHintResponse)
def set_batch_hint(request: BatchHintRequest):
    """Set the traversal batch size"""
    manager = get_traversal_manager()
    try:
        with traversal_lock:
            manager.set_batch_hint(request.hint)
    except InvalidArgumentError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return BatchHintResponse(batch_size=manager.batch_size)
