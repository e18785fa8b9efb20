"""Treasury balances and their transaction log. Nothing here commits."""
import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from ceramisys.core.exceptions import NotFoundError, BusinessRuleError
from ceramisys.models import (
    Treasury, TreasuryTransaction, TreasuryType, TransactionType, TransactionSource, PaymentMethod,
)

logger = logging.getLogger(__name__)


def get_treasury(db: Session, treasury_id: int, active_only: bool = True) -> Treasury:
    query = db.query(Treasury).filter(Treasury.id == treasury_id)
    if active_only:
        query = query.filter(Treasury.is_active == True)
    treasury = query.first()
    if not treasury:
        raise NotFoundError("الخزينة غير موجودة")
    return treasury


def _record(
    db: Session,
    treasury: Treasury,
    tx_type: TransactionType,
    amount: Decimal,
    source: TransactionSource,
    reference_type: Optional[str],
    reference_id: Optional[int],
    description: Optional[str],
    created_by: Optional[str],
) -> TreasuryTransaction:
    before = Decimal(treasury.balance or 0)
    after = before + amount
    treasury.balance = after

    tx = TreasuryTransaction(
        treasury_id=treasury.id,
        type=tx_type,
        source=source,
        amount=amount,
        balance_before=before,
        balance_after=after,
        reference_type=reference_type,
        reference_id=reference_id,
        description=description,
        created_by=created_by,
    )
    db.add(tx)
    db.flush()
    return tx


def deposit(
    db: Session,
    treasury: Treasury,
    amount: Decimal,
    source: TransactionSource,
    reference_type: Optional[str] = None,
    reference_id: Optional[int] = None,
    description: Optional[str] = None,
    created_by: Optional[str] = None,
) -> TreasuryTransaction:
    amount = Decimal(str(amount))
    if amount <= 0:
        raise BusinessRuleError("المبلغ يجب أن يكون أكبر من صفر")
    return _record(db, treasury, TransactionType.DEPOSIT, amount, source,
                   reference_type, reference_id, description, created_by)


def withdraw(
    db: Session,
    treasury: Treasury,
    amount: Decimal,
    source: TransactionSource,
    reference_type: Optional[str] = None,
    reference_id: Optional[int] = None,
    description: Optional[str] = None,
    created_by: Optional[str] = None,
) -> TreasuryTransaction:
    amount = Decimal(str(amount))
    if amount <= 0:
        raise BusinessRuleError("المبلغ يجب أن يكون أكبر من صفر")
    if Decimal(treasury.balance or 0) < amount:
        raise BusinessRuleError(
            f"رصيد الخزينة غير كافٍ. الرصيد الحالي: {treasury.balance}، المطلوب: {amount}",
            data={"balance": float(treasury.balance or 0), "required": float(amount)},
        )
    return _record(db, treasury, TransactionType.WITHDRAWAL, -amount, source,
                   reference_type, reference_id, description, created_by)


def resolve_payment_treasury(
    db: Session,
    company_id: int,
    payment_method: Optional[PaymentMethod],
    bank_account_id: Optional[int] = None,
) -> Optional[Treasury]:
    """
    Cash goes to the company's own treasury; bank transfers and cards go to
    the chosen bank account. Returns None when nothing matches.
    """
    if payment_method in (None, PaymentMethod.CASH):
        return db.query(Treasury).filter(
            Treasury.company_id == company_id,
            Treasury.type == TreasuryType.COMPANY,
            Treasury.is_active == True,
        ).first()

    if bank_account_id:
        return db.query(Treasury).filter(
            Treasury.id == bank_account_id,
            Treasury.type == TreasuryType.BANK,
            Treasury.is_active == True,
        ).first()
    return None


def list_treasuries(db: Session, company_id: Optional[int] = None, treasury_type: Optional[TreasuryType] = None):
    query = db.query(Treasury).filter(Treasury.is_active == True)
    if company_id is not None:
        # Bank and general treasuries are shared across companies
        query = query.filter((Treasury.company_id == company_id) | (Treasury.company_id.is_(None)))
    if treasury_type:
        query = query.filter(Treasury.type == treasury_type)
    return query.order_by(Treasury.id).all()


def list_transactions(db: Session, treasury_id: int, page: int = 1, limit: int = 50):
    query = db.query(TreasuryTransaction).filter(TreasuryTransaction.treasury_id == treasury_id)
    total = query.count()
    items = (
        query.order_by(TreasuryTransaction.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return items, total


def create_treasury(db: Session, data, company_id: Optional[int], created_by: Optional[str] = None) -> Treasury:
    treasury = Treasury(
        name=data.name,
        type=data.type,
        company_id=company_id if data.type == TreasuryType.COMPANY else data.company_id,
        bank_name=data.bank_name,
        account_number=data.account_number,
        balance=Decimal(0),
    )
    db.add(treasury)
    db.flush()
    if data.opening_balance and data.opening_balance > 0:
        deposit(db, treasury, data.opening_balance, TransactionSource.MANUAL,
                description="رصيد افتتاحي", created_by=created_by)
    db.commit()
    db.refresh(treasury)
    logger.info("Treasury %s created (%s)", treasury.id, treasury.type.value)
    return treasury
