"""
Deposit ledger.

Every function here runs inside the caller's transaction and never commits.
State changes are compare-and-set updates guarded on the current deposit
status, and every balance movement writes a WalletTransaction whose unique
idempotency key ("<TYPE>:<id>") makes it happen at most once.
"""
import logging
from datetime import datetime

from sqlalchemy import update
from sqlmodel import Session, select

from cutflow.models.order import Order
from cutflow.models.order_application import DepositStatus, OrderApplication
from cutflow.models.user import User
from cutflow.models.wallet_transaction import WalletTransaction, WalletTransactionType
from cutflow.services.errors import ConcurrentUpdateError, InsufficientBalanceError

logger = logging.getLogger(__name__)

DEPOSIT_SOURCES = ("wallet", "gateway")


def _idempotency_key(tx_type: WalletTransactionType, ref_id: int) -> str:
    return f"{tx_type.value}:{ref_id}"


def _record(
    session: Session,
    *,
    tx_type: WalletTransactionType,
    user_id: int,
    amount: float,
    ref_id: int,
    order_id: int = None,
    application_id: int = None,
) -> WalletTransaction:
    tx = WalletTransaction(
        user_id=user_id,
        order_id=order_id,
        application_id=application_id,
        type=tx_type,
        amount=amount,
        idempotency_key=_idempotency_key(tx_type, ref_id),
    )
    session.add(tx)
    session.flush()
    return tx


def _swap_deposit_status(
    session: Session,
    application: OrderApplication,
    from_status: DepositStatus,
    to_status: DepositStatus,
    **values,
) -> bool:
    now = datetime.utcnow()
    result = session.exec(
        update(OrderApplication)
        .where(OrderApplication.id == application.id)
        .where(OrderApplication.deposit_status == from_status)
        .values(deposit_status=to_status, updated_at=now, **values)
    )
    return result.rowcount == 1


def lock_deposit(
    session: Session,
    application: OrderApplication,
    source: str = "wallet",
) -> WalletTransaction:
    """
    Move a PENDING deposit to LOCKED.

    ``wallet`` takes the amount out of the editor's spendable balance,
    ``gateway`` means it was paid externally and only raises the locked total.
    """
    if source not in DEPOSIT_SOURCES:
        raise ValueError(f"Unknown deposit source: {source}")

    amount = application.deposit_amount

    if not _swap_deposit_status(
        session,
        application,
        DepositStatus.PENDING,
        DepositStatus.LOCKED,
        deposit_locked_at=datetime.utcnow(),
    ):
        raise ConcurrentUpdateError("Deposit is not pending")

    if source == "wallet":
        moved = session.exec(
            update(User)
            .where(User.id == application.editor_id)
            .where(User.wallet_balance >= amount)
            .values(
                wallet_balance=User.wallet_balance - amount,
                wallet_locked=User.wallet_locked + amount,
            )
        )
        if moved.rowcount != 1:
            raise InsufficientBalanceError("Insufficient wallet balance for deposit")
    else:
        session.exec(
            update(User)
            .where(User.id == application.editor_id)
            .values(wallet_locked=User.wallet_locked + amount)
        )

    tx = _record(
        session,
        tx_type=WalletTransactionType.DEPOSIT_LOCK,
        user_id=application.editor_id,
        amount=amount,
        ref_id=application.id,
        order_id=application.order_id,
        application_id=application.id,
    )
    session.refresh(application)

    logger.info(
        "Locked deposit %.2f for application %s via %s",
        amount, application.id, source,
    )
    return tx


def release_deposit(session: Session, application: OrderApplication) -> bool:
    """Return a LOCKED deposit to the editor's balance. False if nothing to release."""
    if not _swap_deposit_status(
        session,
        application,
        DepositStatus.LOCKED,
        DepositStatus.RELEASED,
        deposit_released_at=datetime.utcnow(),
    ):
        return False

    amount = application.deposit_amount
    session.exec(
        update(User)
        .where(User.id == application.editor_id)
        .values(
            wallet_locked=User.wallet_locked - amount,
            wallet_balance=User.wallet_balance + amount,
        )
    )
    _record(
        session,
        tx_type=WalletTransactionType.DEPOSIT_RELEASE,
        user_id=application.editor_id,
        amount=amount,
        ref_id=application.id,
        order_id=application.order_id,
        application_id=application.id,
    )
    session.refresh(application)

    logger.info("Released deposit %.2f for application %s", amount, application.id)
    return True


def forfeit_deposit(session: Session, application: OrderApplication) -> bool:
    if not _swap_deposit_status(
        session,
        application,
        DepositStatus.LOCKED,
        DepositStatus.FORFEITED,
    ):
        return False

    amount = application.deposit_amount
    session.exec(
        update(User)
        .where(User.id == application.editor_id)
        .values(wallet_locked=User.wallet_locked - amount)
    )
    _record(
        session,
        tx_type=WalletTransactionType.DEPOSIT_FORFEIT,
        user_id=application.editor_id,
        amount=amount,
        ref_id=application.id,
        order_id=application.order_id,
        application_id=application.id,
    )
    session.refresh(application)

    logger.warning("Forfeited deposit %.2f for application %s", amount, application.id)
    return True


def credit_payout(session: Session, order: Order, editor_id: int, amount: float) -> bool:
    """Credit the editor's earnings for ``order``; at most once per order."""
    key = _idempotency_key(WalletTransactionType.PAYOUT, order.id)
    already_paid = session.exec(
        select(WalletTransaction).where(WalletTransaction.idempotency_key == key)
    ).first()

    if already_paid:
        return False

    session.exec(
        update(User)
        .where(User.id == editor_id)
        .values(wallet_balance=User.wallet_balance + amount)
    )
    _record(
        session,
        tx_type=WalletTransactionType.PAYOUT,
        user_id=editor_id,
        amount=amount,
        ref_id=order.id,
        order_id=order.id,
    )

    logger.info("Credited payout %.2f to editor %s for order %s", amount, editor_id, order.id)
    return True


def wallet_summary(session: Session, user: User, limit: int = 20) -> dict:
    session.refresh(user)

    transactions = session.exec(
        select(WalletTransaction)
        .where(WalletTransaction.user_id == user.id)
        .order_by(WalletTransaction.created_at.desc(), WalletTransaction.id.desc())
        .limit(limit)
    ).all()

    return {
        "balance": user.wallet_balance,
        "locked": user.wallet_locked,
        "transactions": transactions,
    }
