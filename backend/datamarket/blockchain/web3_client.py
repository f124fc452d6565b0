from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Literal

from web3 import HTTPProvider, Web3
from web3.exceptions import TransactionNotFound

from datamarket.errors import AppError, ValidationError
from datamarket.validators import validate_tx_hash

log = logging.getLogger(__name__)

TxStatus = Literal["pending", "success", "failed", "not_found"]


class ChainUnavailableError(AppError):
    status_code = 503
    default_message = "Chain request failed"


def _gwei(wei: int) -> str:
    return str(Web3.from_wei(wei, "gwei"))


def _eth(wei: int) -> Decimal:
    return Decimal(Web3.from_wei(wei, "ether"))


class ChainReader:
    """
    Read-only view of an EVM chain over JSON-RPC. Nothing here signs or sends transactions;
    tx hashes stored by the ledger are only ever looked up.
    """

    def __init__(self, rpc_url: str, timeout: int = 10, w3: Web3 | None = None) -> None:
        self.rpc_url = rpc_url
        self.w3 = w3 or Web3(HTTPProvider(rpc_url, request_kwargs={"timeout": timeout}))

    def _call(self, what: str, fn: Any, *args: Any) -> Any:
        try:
            return fn(*args)
        except TransactionNotFound:
            raise
        except Exception as e:
            log.warning("chain %s failed: %s", what, e)
            raise ChainUnavailableError() from e

    def network_info(self) -> dict[str, Any]:
        return {
            "chain_id": int(self._call("chain_id", lambda: self.w3.eth.chain_id)),
            "block_number": int(self._call("block_number", lambda: self.w3.eth.block_number)),
        }

    def gas_prices(self) -> dict[str, str]:
        """Slow / standard / fast as 80 / 100 / 120 % of the node's gas price, in gwei."""
        base = int(self._call("gas_price", lambda: self.w3.eth.gas_price))
        return {
            "slow": _gwei(base * 80 // 100),
            "standard": _gwei(base),
            "fast": _gwei(base * 120 // 100),
        }

    def tx_status(self, tx_hash: str) -> TxStatus:
        try:
            receipt = self._call("receipt", self.w3.eth.get_transaction_receipt, tx_hash)
        except TransactionNotFound:
            receipt = None
        if receipt is None:
            try:
                tx = self._call("transaction", self.w3.eth.get_transaction, tx_hash)
            except TransactionNotFound:
                return "not_found"
            return "pending" if tx is not None else "not_found"
        return "success" if int(receipt["status"]) == 1 else "failed"

    def tx_details(self, tx_hash: str) -> dict[str, Any]:
        if not validate_tx_hash(tx_hash):
            raise ValidationError(errors=["hash: Please provide a valid transaction hash"])
        try:
            tx = self._call("transaction", self.w3.eth.get_transaction, tx_hash)
        except TransactionNotFound:
            return {"hash": tx_hash, "status": "not_found"}
        try:
            receipt = self._call("receipt", self.w3.eth.get_transaction_receipt, tx_hash)
        except TransactionNotFound:
            receipt = None

        out: dict[str, Any] = {
            "hash": tx_hash,
            "status": "pending",
            "from": tx["from"],
            "to": tx.get("to") or "",
            "value": _eth(int(tx["value"])),
            "block_number": None,
            "gas_used": None,
            "gas_fee": None,
        }
        if receipt is not None:
            gas_used = int(receipt["gasUsed"])
            price = int(receipt.get("effectiveGasPrice") or tx.get("gasPrice") or 0)
            out.update(
                status="success" if int(receipt["status"]) == 1 else "failed",
                block_number=int(receipt["blockNumber"]),
                gas_used=gas_used,
                gas_fee=_eth(gas_used * price),
            )
        return out

    def verify_transaction(self, tx_hash: str) -> TxStatus:
        """Status check used at purchase time; failed or unknown hashes are rejected."""
        status = self.tx_status(tx_hash)
        if status in ("failed", "not_found"):
            log.warning("chain verification rejected tx=%s status=%s", tx_hash, status)
            raise ValidationError(
                "Blockchain transaction could not be verified",
                errors=[f"blockchainTxHash: transaction is {status.replace('_', ' ')}"],
            )
        return status
