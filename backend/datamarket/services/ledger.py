"""Purchase ledger: creates purchase records, drives their status and credits statistics once."""

from __future__ import annotations

import logging
import uuid
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from datamarket.blockchain.web3_client import ChainReader
from datamarket.config import settings
from datamarket.errors import AppError, ConflictError, ForbiddenError, ValidationError
from datamarket.models import Transaction, User
from datamarket.repos import dataset_repo, transaction_repo, user_repo
from datamarket.repos.transaction_repo import Row, Side
from datamarket.schemas.common import PageParams
from datamarket.schemas.transactions import PurchaseIn, StatusUpdateIn, TransactionFilter
from datamarket.telemetry.metrics import purchases_created_total, stats_propagations_total
from datamarket.validators import TRANSACTION_STATUSES, processing_fee

log = logging.getLogger(__name__)

DUPLICATE_PURCHASE = "You have already purchased this dataset"

# same-status updates are allowed and only merge chain fields
TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"pending", "completed", "failed"}),
    "completed": frozenset({"completed", "refunded"}),
    "failed": frozenset({"failed"}),
    "refunded": frozenset({"refunded"}),
}


class Ledger:
    def __init__(self, db: Session, chain: ChainReader | None = None, verify_onchain: bool | None = None) -> None:
        self.db = db
        self.chain = chain
        self.verify_onchain = settings.verify_onchain_tx if verify_onchain is None else verify_onchain

    # ------------------------------------------------------------------ writes

    def create_purchase(self, buyer: User, payload: PurchaseIn) -> Row:
        ds = dataset_repo.get(self.db, payload.dataset_id)
        if not ds.is_active:
            raise ValidationError("Dataset is not available for purchase")
        if ds.seller_id == buyer.id:
            raise ValidationError("You cannot purchase your own dataset")
        if payload.amount != ds.price:
            raise ValidationError(f"Amount must match dataset price: {ds.price.normalize():f} {ds.currency}")
        currency = payload.currency or ds.currency
        if currency != ds.currency:
            raise ValidationError(f"Currency must match dataset currency: {ds.currency}")
        if transaction_repo.has_completed(self.db, buyer.id, ds.id):
            raise ConflictError(DUPLICATE_PURCHASE)

        tx_hash = payload.blockchain_tx_hash
        if tx_hash and self.verify_onchain:
            if self.chain is None:
                raise AppError("Chain access is not configured", status_code=503)
            self.chain.verify_transaction(tx_hash)

        tx = Transaction(
            buyer_id=buyer.id,
            seller_id=ds.seller_id,
            dataset_id=ds.id,
            amount=payload.amount,
            currency=currency,
            status="completed" if tx_hash else "pending",
            type="purchase",
            payment_method=payload.payment_method,
            processing_fee=processing_fee(payload.amount),
            blockchain_tx_hash=tx_hash,
        )
        try:
            transaction_repo.add(self.db, tx)
            if tx.status == "completed":
                self._propagate(tx)
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError(DUPLICATE_PURCHASE) from e

        purchases_created_total.labels(status=tx.status).inc()
        log.info("purchase created tx=%s buyer=%s dataset=%s status=%s", tx.id, buyer.id, ds.id, tx.status)
        return transaction_repo.get_related(self.db, tx.id)

    def update_status(self, tx_id: uuid.UUID, caller: User, payload: StatusUpdateIn) -> Row:
        tx = transaction_repo.get(self.db, tx_id, for_update=True)
        if caller.role != "admin" and tx.buyer_id != caller.id:
            raise ForbiddenError("Only the buyer can update transaction status")
        new = payload.status
        if new not in TRANSACTION_STATUSES:
            raise ValidationError("Invalid transaction status")

        # read before the status field is overwritten
        prev = tx.status
        if new not in TRANSITIONS[prev]:
            raise ValidationError(f"Cannot change transaction status from {prev} to {new}")

        if payload.blockchain_tx_hash:
            tx.blockchain_tx_hash = payload.blockchain_tx_hash
        if payload.block_number:
            tx.block_number = payload.block_number
        if payload.gas_used:
            tx.gas_used = payload.gas_used
        if payload.gas_fee:
            tx.gas_fee = payload.gas_fee
        tx.status = new

        try:
            self.db.flush()
            if new == "completed" and prev != "completed":
                self._propagate(tx)
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError(DUPLICATE_PURCHASE) from e

        if prev != new:
            log.info("transaction status changed tx=%s %s -> %s by=%s", tx_id, prev, new, caller.id)
        return transaction_repo.get_related(self.db, tx_id)

    def _propagate(self, tx: Transaction) -> bool:
        """Credit buyer, seller and listing for a completed transaction, at most once."""
        self.db.flush()
        if not transaction_repo.claim_propagation(self.db, tx.id):
            log.info("propagation skipped tx=%s (already applied)", tx.id)
            return False
        user_repo.apply_transaction_effect(self.db, tx.buyer_id, "buyer", tx.amount, tx.processing_fee)
        user_repo.apply_transaction_effect(self.db, tx.seller_id, "seller", tx.amount, tx.processing_fee)
        dataset_repo.increment_downloads(self.db, tx.dataset_id)
        stats_propagations_total.inc()
        log.info("propagation applied tx=%s", tx.id)
        return True

    # ------------------------------------------------------------------ reads

    def list_transactions(
        self, caller: User, flt: TransactionFilter, page: PageParams, side: Side | None = None
    ) -> tuple[list[Row], int]:
        return transaction_repo.list_for_user(
            self.db,
            caller.id,
            flt,
            side=side,
            offset=page.offset,
            limit=page.limit,
            sort=page.sort,
            descending=page.descending,
        )

    def get_by_id(self, tx_id: uuid.UUID, caller: User) -> Row:
        tx, related = transaction_repo.get_related(self.db, tx_id)
        if caller.role != "admin" and caller.id not in (tx.buyer_id, tx.seller_id):
            raise ForbiddenError("You can only view your own transactions")
        return tx, related

    def analytics(self) -> dict[str, Any]:
        return {
            "status_breakdown": transaction_repo.status_breakdown(self.db),
            "daily_transactions": transaction_repo.daily_totals(self.db, days=30),
            "top_buyers": transaction_repo.top_parties(self.db, "buyer", limit=10),
            "top_sellers": transaction_repo.top_parties(self.db, "seller", limit=10),
        }
