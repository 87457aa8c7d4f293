"""
Log fetcher service for EVM contract event logs.
Wraps AsyncWeb3 eth_getLogs and normalizes results into RawLog records.
"""

from typing import Any, Iterable, List, Mapping, Optional, Protocol

import structlog
from web3 import AsyncWeb3, AsyncHTTPProvider

from fundsync.core.config import ChainConfig
from fundsync.core.exceptions import ChainError, ConfigurationError
from fundsync.indexer.core.types import RawLog


logger = structlog.get_logger(__name__)


class LogFetcher(Protocol):
    """Fetches raw logs for a set of contracts and signature hashes."""

    async def fetch_logs(
        self,
        from_block: int,
        addresses: Iterable[str],
        topics: Iterable[str],
    ) -> List[RawLog]:
        """Return logs from from_block (inclusive), ordered by (block, log index)."""
        ...


def _hex_prefixed(value: Any) -> str:
    raw = value.hex() if hasattr(value, "hex") else str(value)
    if raw.startswith("0x"):
        return raw
    return f"0x{raw}"


def raw_log_from_web3(log: Mapping[str, Any]) -> RawLog:
    """Convert a web3 log receipt into a RawLog."""
    return RawLog(
        address=str(log["address"]),
        data=_hex_prefixed(log["data"]),
        topics=tuple(_hex_prefixed(topic).lower() for topic in log["topics"]),
        block_number=int(log["blockNumber"]),
        block_hash=_hex_prefixed(log["blockHash"]),
        transaction_hash=_hex_prefixed(log["transactionHash"]),
        transaction_index=int(log["transactionIndex"]),
        log_index=int(log["logIndex"]),
    )


class Web3LogFetcher:
    """
    LogFetcher backed by an EVM JSON-RPC node.

    Results are returned in the node's order, which eth_getLogs defines
    as ascending (blockNumber, logIndex).
    """

    def __init__(self, rpc_url: Optional[str] = None, w3: Optional[AsyncWeb3] = None):
        self.logger = logger.bind(service="log_fetcher")
        if w3 is None:
            rpc_config = ChainConfig.get_rpc_config()
            endpoint = rpc_url or rpc_config["endpoint"]
            if not endpoint:
                raise ConfigurationError("EVM_RPC_URL is not configured")
            request_kwargs = {}
            if "timeout" in rpc_config:
                request_kwargs["timeout"] = rpc_config["timeout"]
            w3 = AsyncWeb3(
                AsyncHTTPProvider(endpoint, request_kwargs=request_kwargs)
            )
        self.w3 = w3

    @staticmethod
    def build_filter(from_block: int, addresses: Iterable[str], topics: Iterable[str]) -> dict:
        """eth_getLogs filter: any of the addresses, topic0 any of the hashes."""
        return {
            "fromBlock": from_block,
            "address": [AsyncWeb3.to_checksum_address(address) for address in addresses],
            "topics": [list(topics)],
        }

    async def fetch_logs(
        self,
        from_block: int,
        addresses: Iterable[str],
        topics: Iterable[str],
    ) -> List[RawLog]:
        """
        Fetch logs from from_block onward.

        Raises:
            ChainError: If the node request fails
        """
        filter_params = self.build_filter(from_block, addresses, topics)
        if not filter_params["address"]:
            return []

        try:
            logs = await self.w3.eth.get_logs(filter_params)
        except Exception as e:
            self.logger.error(
                "Failed to fetch logs",
                from_block=from_block,
                addresses=filter_params["address"],
                error=str(e)
            )
            raise ChainError(f"Failed to fetch logs: {e}", {"from_block": from_block}) from e

        raw_logs = [raw_log_from_web3(log) for log in logs]
        self.logger.info(
            "Fetched logs",
            from_block=from_block,
            contracts=len(filter_params["address"]),
            count=len(raw_logs)
        )
        return raw_logs
