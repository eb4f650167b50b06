# smartcities/routes/admin.py
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from smartcities import crud
from smartcities.db import get_db
from smartcities.deps import check_admin_token
from smartcities.errors import NotFound
from smartcities.schemas import ResetUserIn
from smartcities.services.reports import purge_reports

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/reset_user")
async def reset_user(payload: ResetUserIn,
                     db: AsyncSession = Depends(get_db),
                     _=Depends(check_admin_token)):
    if await crud.get_user(db, payload.user_id) is None:
        raise NotFound("Utilisateur introuvable.")

    # 1) Supprimer tous les reports de cet utilisateur (votes/commentaires en cascade)
    report_ids = await crud.report_ids_of_user(db, payload.user_id)
    # 2) Recalculer le taux de confiance des votants touchés
    voters = await purge_reports(db, report_ids)
    await db.commit()

    logger.info("[admin] reset_user user=%s reports=%d voters=%d", payload.user_id, len(report_ids), len(voters))
    return {"ok": True, "user_id": payload.user_id, "deleted_reports": len(report_ids)}
