from types import SimpleNamespace

import pytest
from web3.exceptions import TransactionNotFound

from datamarket.blockchain.web3_client import ChainReader, ChainUnavailableError
from datamarket.errors import ValidationError

TX = "0x" + "ab" * 32


class FakeEth:
    def __init__(self, txs=None, receipts=None, gas_price=10**9, broken=False):
        self.txs = txs or {}
        self.receipts = receipts or {}
        self.chain_id = 31337
        self.block_number = 42
        self._gas_price = gas_price
        self.broken = broken

    @property
    def gas_price(self):
        if self.broken:
            raise ConnectionError("rpc down")
        return self._gas_price

    def get_transaction(self, h):
        if h not in self.txs:
            raise TransactionNotFound(f"{h} not found")
        return self.txs[h]

    def get_transaction_receipt(self, h):
        if h not in self.receipts:
            raise TransactionNotFound(f"{h} not mined")
        return self.receipts[h]


def reader(**kw) -> ChainReader:
    return ChainReader("http://rpc.invalid", w3=SimpleNamespace(eth=FakeEth(**kw)))


def test_network_info_and_gas_prices():
    r = reader(gas_price=10 * 10**9)
    assert r.network_info() == {"chain_id": 31337, "block_number": 42}
    assert r.gas_prices() == {"slow": "8", "standard": "10", "fast": "12"}


def test_rpc_failure_is_unavailable():
    with pytest.raises(ChainUnavailableError):
        reader(broken=True).gas_prices()


def test_tx_status_variants():
    pending = reader(txs={TX: {"from": "0x1", "value": 0}})
    assert pending.tx_status(TX) == "pending"
    assert reader().tx_status(TX) == "not_found"
    mined = reader(txs={TX: {}}, receipts={TX: {"status": 1}})
    assert mined.tx_status(TX) == "success"


def test_tx_details_with_receipt():
    r = reader(
        txs={TX: {"from": "0xfrom", "to": "0xto", "value": 5 * 10**17, "gasPrice": 2 * 10**9}},
        receipts={TX: {"status": 1, "blockNumber": 7, "gasUsed": 21000}},
    )
    d = r.tx_details(TX)
    assert d["status"] == "success"
    assert d["block_number"] == 7
    assert d["gas_used"] == 21000
    assert str(d["value"]) == "0.5"
    assert float(d["gas_fee"]) == pytest.approx(0.000042)


def test_tx_details_rejects_bad_hash():
    with pytest.raises(ValidationError):
        reader().tx_details("0x1234")


def test_verify_transaction_rejects_failed_and_unknown():
    with pytest.raises(ValidationError):
        reader().verify_transaction(TX)
    with pytest.raises(ValidationError):
        reader(txs={TX: {}}, receipts={TX: {"status": 0}}).verify_transaction(TX)
    assert reader(txs={TX: {}}).verify_transaction(TX) == "pending"
