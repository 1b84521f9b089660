"""Serve stored proof files to the participants of the owning task."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth import AuthUser, current_user
from ..database import get_db
from ..errors import NotFoundError
from ..proofs import PUBLIC_PREFIX, can_read, proof_store
from ..services import task_svc

router = APIRouter(tags=["uploads"])


@router.get(PUBLIC_PREFIX + "{name}")
async def proof_file(
    name: str,
    user: AuthUser = Depends(current_user),
    db: AsyncSession = Depends(get_db),
):
    path = proof_store.path_for_name(name)
    if path is None:
        raise NotFoundError("File not found")
    task = await task_svc.find_task_by_proof(db, PUBLIC_PREFIX + name)
    # Non-participants get the same answer as for a missing file.
    if task is None or not can_read(user, task) or not path.is_file():
        raise NotFoundError("File not found")
    return FileResponse(path, media_type="application/pdf", filename=name)
