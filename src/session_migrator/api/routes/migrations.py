"""
Session Migrator API Routes
REST endpoints for snapshot capture and document-to-document migration
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from ...core.config import MigrationConfig
from ...core.integrator import Integrator
from ...store.memory import InMemoryDocumentStore
from ...store.models import Document

logger = logging.getLogger(__name__)

router = APIRouter()


class SnapshotRequest(BaseModel):
    """Request model for reading a document into a snapshot"""
    document: Document


class MigrationRequest(BaseModel):
    """Request model for migrating one document into another"""
    source: Optional[Document] = None
    destination: Document = Field(default_factory=Document)
    clear_destination: bool = False
    config: Optional[MigrationConfig] = None


@router.post("/snapshots")
async def create_snapshot(request: SnapshotRequest) -> Dict[str, Any]:
    """Parse a document and return its snapshot with statistics"""
    integrator = Integrator()
    snapshot = integrator.parse_project(InMemoryDocumentStore(request.document))
    return snapshot.model_dump(mode="json")


@router.post("/migrations")
async def create_migration(request: MigrationRequest) -> Dict[str, Any]:
    """Migrate the posted source document into the posted destination"""
    integrator = Integrator(config=request.config)
    source = InMemoryDocumentStore(request.source) if request.source is not None else None
    destination = InMemoryDocumentStore(request.destination)

    result = integrator.migrate(source, destination, clear_destination=request.clear_destination)
    if result.is_err():
        logger.warning(f"Migration rejected: {result.error}")
        raise HTTPException(status_code=400, detail=result.error)

    outcome = result.unwrap()
    return {
        "success": outcome.success,
        "stats": outcome.stats.model_dump(mode="json") if outcome.stats else None,
        "reports": [report.model_dump(mode="json") for report in outcome.reports],
        "destination": destination.document.model_dump(mode="json"),
    }
