"""
Solana ledger lookups used to confirm Solana Pay transfers
"""
import asyncio
import logging
from decimal import Decimal
from typing import List, Optional

from solana.exceptions import SolanaRpcException
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed
from solana.rpc.core import RPCException
from solders.pubkey import Pubkey
from solders.signature import Signature

from config import LEDGER_TIMEOUT_SECONDS, SOLANA_RPC_URL
from errors import UpstreamError
from solana_pay import to_lamports

logger = logging.getLogger(__name__)


class SolanaLedger:
    """
    Read-only view of the chain through a JSON-RPC endpoint.

    Every call is bounded by ``timeout`` seconds; RPC failures and
    timeouts surface as UpstreamError.
    """

    def __init__(self, endpoint: str = SOLANA_RPC_URL, timeout: float = LEDGER_TIMEOUT_SECONDS):
        self.endpoint = endpoint
        self.timeout = timeout

    def _client(self) -> AsyncClient:
        return AsyncClient(self.endpoint, commitment=Confirmed, timeout=self.timeout)

    async def _call(self, what: str, coro):
        try:
            return await asyncio.wait_for(coro, timeout=self.timeout)
        except asyncio.TimeoutError as e:
            logger.error("Ledger %s timed out after %.1fs (%s)", what, self.timeout, self.endpoint)
            raise UpstreamError(f"Ledger {what} timed out") from e
        except (SolanaRpcException, RPCException) as e:
            logger.exception("Ledger %s failed (%s)", what, self.endpoint)
            raise UpstreamError(f"Ledger {what} failed") from e

    async def find_reference(self, reference: str) -> Optional[str]:
        """Newest confirmed signature that mentions the reference, if any"""
        async with self._client() as client:
            resp = await self._call(
                "signature lookup",
                client.get_signatures_for_address(
                    Pubkey.from_string(reference), limit=1, commitment=Confirmed
                ),
            )

        if not resp.value:
            return None
        return str(resp.value[0].signature)

    async def validate_transfer(
        self, signature: str, recipient: str, amount: Decimal, reference: str
    ) -> bool:
        """
        Check that a transaction moved at least ``amount`` SOL to the
        recipient and carries the reference key.
        """
        async with self._client() as client:
            resp = await self._call(
                "transaction fetch",
                client.get_transaction(
                    Signature.from_string(signature),
                    encoding="base64",
                    commitment=Confirmed,
                    max_supported_transaction_version=0,
                ),
            )

        tx = resp.value
        if tx is None:
            logger.info("Transaction %s not available yet", signature)
            return False

        meta = tx.transaction.meta
        if meta is None or meta.err is not None:
            logger.info("Transaction %s failed on chain: %s", signature, meta and meta.err)
            return False

        keys = _account_keys(tx.transaction.transaction.message.account_keys, meta.loaded_addresses)
        if reference not in keys:
            logger.info("Reference %s missing from transaction %s", reference, signature)
            return False
        if recipient not in keys:
            logger.info("Recipient %s missing from transaction %s", recipient, signature)
            return False

        index = keys.index(recipient)
        received = meta.post_balances[index] - meta.pre_balances[index]
        expected = to_lamports(amount)
        if received < expected:
            logger.info(
                "Transaction %s paid %d lamports, expected %d", signature, received, expected
            )
            return False
        return True


def _account_keys(static_keys, loaded_addresses) -> List[str]:
    keys = [str(key) for key in static_keys]
    if loaded_addresses is not None:
        keys.extend(str(key) for key in loaded_addresses.writable)
        keys.extend(str(key) for key in loaded_addresses.readonly)
    return keys
