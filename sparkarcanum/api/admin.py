"""
Admin endpoints.

Trigger card imports, rules updates, and rarity repairs. Every endpoint
returns aggregate counts only, never per-record detail.
"""

import logging
from pathlib import Path
from typing import Annotated

import httpx
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sparkarcanum.db.database import get_session, get_session_factory
from sparkarcanum.errors import BulkDataError, MissingIdentifierError, RarityCacheError
from sparkarcanum.jobs.import_cards import run_card_import
from sparkarcanum.jobs.repair_rarities import run_card_rarity_repair, run_rarity_repair
from sparkarcanum.jobs.update_rules import run_rules_update
from sparkarcanum.models.summary import BackfillTally
from sparkarcanum.services.rarity import rarity_report

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])

SessionFactory = Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)]


class ImportCardsRequest(BaseModel):
    download: bool = Field(default=False, description="Fetch a fresh AllPrintings.json first")


class ImportCardsResponse(BaseModel):
    processed: int
    upserted: int
    errors: int
    sets: int


class ImportRulesRequest(BaseModel):
    path: str | None = Field(
        default=None, description="Local rules text file. Downloaded when omitted."
    )


class ImportRulesResponse(BaseModel):
    inserted: int
    updated: int
    unchanged: int
    errors: int
    total: int


class RepairRaritiesRequest(BaseModel):
    download: bool = Field(default=False, description="Fetch AllPrintings if missing")


class RarityRepairResponse(BaseModel):
    processed: int
    updated: int
    unchanged: int
    errors: int
    sources: dict[str, int] = Field(default_factory=dict)


class RarityReportResponse(BaseModel):
    missing: int
    by_rarity: dict[str, int]
    samples: dict[str, list[str]]


def _tally_response(tally: BackfillTally) -> RarityRepairResponse:
    return RarityRepairResponse(
        processed=tally.processed,
        updated=tally.updated,
        unchanged=tally.unchanged,
        errors=tally.errors,
        sources=tally.sources,
    )


@router.post("/import-cards", response_model=ImportCardsResponse)
async def import_cards(
    session_factory: SessionFactory,
    request: ImportCardsRequest | None = None,
) -> ImportCardsResponse:
    """
    Import MTGJSON AllPrintings.

    Returns 422 if the bulk data is malformed and 502 if the download fails.
    """
    download = request.download if request else False
    try:
        summary = await run_card_import(download=download, session_factory=session_factory)
    except (BulkDataError, MissingIdentifierError) as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        ) from e
    except httpx.HTTPError as e:
        logger.error("AllPrintings download failed: %s", e)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Could not download AllPrintings.json",
        ) from e

    return ImportCardsResponse(**summary.to_dict())


@router.post("/import-rules", response_model=ImportRulesResponse)
async def import_rules(
    session_factory: SessionFactory,
    request: ImportRulesRequest | None = None,
) -> ImportRulesResponse:
    """
    Import the Comprehensive Rules.

    Returns 404 if a local path was given but does not exist, and 502 if
    the download fails.
    """
    path = Path(request.path) if request and request.path else None
    if path is not None and not path.is_file():
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Rules file {path} not found",
        )

    try:
        summary = await run_rules_update(path=path, session_factory=session_factory)
    except httpx.HTTPError as e:
        logger.error("Rules download failed: %s", e)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Could not download the Comprehensive Rules",
        ) from e

    return ImportRulesResponse(**summary.to_dict(), total=summary.total)


@router.post("/repair-rarities", response_model=RarityRepairResponse)
async def repair_rarities(
    session_factory: SessionFactory,
    request: RepairRaritiesRequest | None = None,
) -> RarityRepairResponse:
    """
    Fill in every missing card rarity.

    Returns 500 if the rarity cache file is corrupt.
    """
    download = request.download if request else False
    try:
        tally = await run_rarity_repair(session_factory=session_factory, download=download)
    except RarityCacheError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e),
        ) from e

    return _tally_response(tally)


@router.post("/repair-rarities/{card_uuid}", response_model=RarityRepairResponse)
async def repair_card_rarity(
    card_uuid: str,
    session_factory: SessionFactory,
) -> RarityRepairResponse:
    """
    Re-resolve one card's rarity.

    The heuristic is never used here, so a card no data source knows is
    reported as an error rather than guessed. Returns 404 if the card does
    not exist.
    """
    try:
        tally = await run_card_rarity_repair(card_uuid, session_factory=session_factory)
    except RarityCacheError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e),
        ) from e

    if tally is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Card '{card_uuid}' not found",
        )
    return _tally_response(tally)


@router.get("/rarity-report", response_model=RarityReportResponse)
async def get_rarity_report(
    session: Annotated[AsyncSession, Depends(get_session)],
) -> RarityReportResponse:
    """Count cards missing a rarity and sample each rarity for spot checks."""
    report = await rarity_report(session)
    return RarityReportResponse(
        missing=report.missing,
        by_rarity=report.by_rarity,
        samples=report.samples,
    )
