from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from cutflow.database import get_session
from cutflow.models.user import User
from cutflow.schemas.wallet_schemas import WalletSummary
from cutflow.services import wallet_service
from cutflow.utils.token import get_current_user

router = APIRouter()


@router.get("", response_model=WalletSummary)
def get_wallet(
    limit: int = Query(20, ge=1, le=100),
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    return wallet_service.wallet_summary(session, current_user, limit=limit)
