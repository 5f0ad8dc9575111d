"""NatJus Backend — Dashboard route: totals per tipo, this month, recent notes."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from natjus.database import get_db_session
from natjus.schemas.nota import DashboardResponse, NotaResponse, TipoCount
from natjus.services.nota_service import nota_service

router = APIRouter(prefix="/api", tags=["Dashboard"])


@router.get("/dashboard", response_model=DashboardResponse, summary="Dashboard statistics")
async def get_dashboard(db: AsyncSession = Depends(get_db_session)) -> DashboardResponse:
    stats = await nota_service.dashboard(db)
    return DashboardResponse(
        total=stats["total"],
        processuais=stats["processuais"],
        pre_processuais=stats["pre_processuais"],
        this_month=stats["this_month"],
        por_tipo=[TipoCount(**row) for row in stats["por_tipo"]],
        recentes=[NotaResponse.model_validate(n) for n in stats["recentes"]],
    )
