from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from findora.database.connection import get_db
from findora.database.models import User
from findora.models.search_history import (
    SearchHistoryCreate,
    SearchHistoryResponse,
    SearchHistoryEntryEnvelope,
    SearchHistoryListEnvelope,
)
from findora.services.auth import get_current_user
from findora.services import search_history

router = APIRouter()


@router.get("", response_model=SearchHistoryListEnvelope)
async def get_search_history(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    records = await search_history.list_history(db, current_user.id)
    return SearchHistoryListEnvelope(history=[SearchHistoryResponse.model_validate(r) for r in records])


@router.post("", response_model=SearchHistoryEntryEnvelope)
async def add_search_history(
    entry: SearchHistoryCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    record = await search_history.add_history(db, current_user.id, entry)
    return SearchHistoryEntryEnvelope(history=SearchHistoryResponse.model_validate(record))


@router.delete("/{history_id}", response_model=dict)
async def delete_search_history(
    history_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await search_history.remove_history(db, current_user.id, history_id)
    return {"success": True}
