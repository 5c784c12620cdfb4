# lightweb3/application/transactions.py
from __future__ import annotations
import asyncio, logging
from typing import TYPE_CHECKING, Any, Sequence

from eth_account import Account
from eth_utils import to_checksum_address

from ..domain.errors import DecodeError
from ..domain.models import TransactionRequest, TransactionResponse
from ..domain.topics import encode_call
from ..domain.value_types import Hash32, Quantity, normalize_address

if TYPE_CHECKING:
    from .client import Web3

logger = logging.getLogger(__name__)


def sign_transaction(
    *,
    to: str | None,
    nonce: int,
    gas_price: int,
    gas_limit: int,
    value: int,
    data: bytes,
    chain_id: int,
    private_key: bytes | str,
) -> bytes:
    """Legacy (EIP-155) transaction signed for `chain_id`; returns the raw RLP bytes."""
    tx: dict[str, Any] = {
        "nonce": int(nonce),
        "gasPrice": int(gas_price),
        "gas": int(gas_limit),
        "value": int(value),
        "data": bytes(data),
        "chainId": int(chain_id),
    }
    if to is not None:
        tx["to"] = to_checksum_address(normalize_address(to))
    signed = Account.sign_transaction(tx, private_key)
    return bytes(signed.raw_transaction)


class TransactionsMixin:
    """Transaction submission and confirmation. Mixed into Web3."""

    async def _gas_price_and_nonce(self: "Web3", own_address: str) -> tuple[Quantity, Quantity]:
        gas_price, nonce = await asyncio.gather(
            self.eth_gas_price(),
            self.eth_get_transaction_count(own_address),
        )
        return gas_price, nonce

    async def send_transaction(
        self: "Web3",
        to_address: str | None,
        data: bytes,
        value: int,
        own_address: str,
        secret: bytes | str,
        *,
        wait_timeout: float | None = None,
    ) -> Hash32:
        """Sign and broadcast a state-changing transaction; returns its hash.

        Gas price and nonce are read from the node at call time and the gas limit is the
        client's fixed ceiling. With `wait_timeout` set, also waits (at most that many
        seconds) for the node to report the transaction; TimeoutError is raised after
        the transaction has already been broadcast.
        """
        gas_price, nonce = await self._gas_price_and_nonce(own_address)
        raw = sign_transaction(
            to=to_address,
            nonce=nonce,
            gas_price=gas_price,
            gas_limit=self.gas_limit,
            value=value,
            data=data,
            chain_id=self.chain_id,
            private_key=secret,
        )
        tx_hash = await self.eth_send_raw_transaction(raw)
        logger.info("sent %s nonce=%d gas_price=%d chain_id=%d", tx_hash.to_rpc(), nonce, gas_price, self.chain_id)
        if wait_timeout is not None:
            await asyncio.wait_for(self.wait_for_transaction(tx_hash), wait_timeout)
        return tx_hash

    async def contract_call(
        self: "Web3",
        contract_address: str,
        sig: str,
        args: Sequence[Any],
        own_address: str,
    ) -> Quantity:
        """eth_call a view function and decode its single-word return value."""
        gas_price, nonce = await self._gas_price_and_nonce(own_address)
        req = TransactionRequest(
            from_=normalize_address(own_address),
            to=normalize_address(contract_address),
            nonce=nonce,
            gas=None,
            gas_price=gas_price,
            value=Quantity(0),
            data=encode_call(sig, args),
        )
        out = await self.eth_call(req)
        if len(out) != 32:
            raise DecodeError(f"{sig}: expected a single 32-byte word, got {len(out)} bytes")
        return Quantity(int.from_bytes(out, "big"))

    async def wait_for_transaction(self: "Web3", tx_hash: int | bytes) -> TransactionResponse:
        """Poll eth_getTransactionByHash every `poll_interval_s` until the node knows the
        transaction. Never gives up: bound it with asyncio.wait_for if needed."""
        h = Hash32.from_rpc(tx_hash) if isinstance(tx_hash, (bytes, bytearray)) else Hash32(tx_hash)
        while True:
            tx = await self.eth_get_transaction_by_hash(h)
            if tx is not None:
                return tx
            await asyncio.sleep(self.poll_interval_s)
