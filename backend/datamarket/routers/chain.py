from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends

from datamarket.blockchain.web3_client import ChainReader
from datamarket.deps import require_chain
from datamarket.schemas.common import ok

router = APIRouter(prefix="/chain", tags=["chain"])

Chain = Annotated[ChainReader, Depends(require_chain)]


@router.get("/info")
def chain_info(chain: Chain) -> dict[str, Any]:
    info = chain.network_info()
    return ok({"chainId": info["chain_id"], "blockNumber": info["block_number"]}, "Network info retrieved successfully")


@router.get("/gas-prices")
def gas_prices(chain: Chain) -> dict[str, Any]:
    return ok(chain.gas_prices(), "Gas prices retrieved successfully")


@router.get("/tx/{tx_hash}")
def tx_details(tx_hash: str, chain: Chain) -> dict[str, Any]:
    d = chain.tx_details(tx_hash)
    data = {
        "hash": d["hash"],
        "status": d["status"],
        "from": d.get("from"),
        "to": d.get("to"),
        "value": float(d["value"]) if d.get("value") is not None else None,
        "blockNumber": d.get("block_number"),
        "gasUsed": d.get("gas_used"),
        "gasFee": float(d["gas_fee"]) if d.get("gas_fee") is not None else None,
    }
    return ok(data, "Transaction status retrieved successfully")
