from fastapi import APIRouter, Depends, Response
from sqlmodel import Session

from cutflow.database import get_session
from cutflow.models.order import Order
from cutflow.models.user import User
from cutflow.services.errors import NotFoundError, PermissionDeniedError
from cutflow.services.invoice_service import invoice_number, render_invoice_pdf
from cutflow.services.order_service import is_participant
from cutflow.utils.token import get_current_user

router = APIRouter()


@router.get("/order/{order_id}")
def download_invoice(
    order_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    order = session.get(Order, order_id)
    if not order:
        raise NotFoundError("Order not found")

    if not is_participant(order, current_user):
        raise PermissionDeniedError("Not allowed to download this invoice")

    creator = session.get(User, order.creator_id)
    pdf = render_invoice_pdf(order, creator)

    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={
            "Content-Disposition": (
                f'attachment; filename="Invoice-{invoice_number(order.id)}.pdf"'
            )
        },
    )
