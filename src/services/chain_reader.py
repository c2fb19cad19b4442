# coding: utf-8
"""
Chain Reader - read-only access to the NFT collection contract

Every call returns a ChainLookup tagged result:
- EXISTS(value): the chain answered with a usable value
- DOES_NOT_EXIST: contract reverted or answered with an empty marker
  (zero owner address, fid 0)
- UNKNOWN(error): transport failure, rate limit, timeout, bad output

Callers must only delete cached rows on DOES_NOT_EXIST.
"""

import asyncio
import logging  # Needed for tenacity before_sleep_log level constants
from dataclasses import dataclass, field
from datetime import datetime, UTC
from typing import Any, Dict, Optional

import aiohttp
from loguru import logger
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    before_sleep_log,
)
from web3 import AsyncWeb3, AsyncHTTPProvider
from web3.exceptions import ContractLogicError, Web3Exception

from config.config import (
    CHAIN_RPC_URL,
    NFT_CONTRACT_ADDRESS,
    CHAIN_REQUEST_TIMEOUT,
    CHAIN_RETRY_ATTEMPTS,
)
from src.core.enums import LookupStatus
from src.core.errors import ConfigurationError
from src.services.nft_contract import (
    NFT_CONTRACT_ABI,
    METADATA_COMPONENTS,
    TRAIT_FIELDS,
    ZERO_ADDRESS,
)

# Create standard logger for tenacity
std_logger = logging.getLogger(__name__)

# Errors a chain call may raise that are NOT a definitive answer
CHAIN_ERRORS = (
    Web3Exception,
    aiohttp.ClientError,
    asyncio.TimeoutError,
    OSError,
    ValueError,
)

RATE_LIMIT_MARKERS = ("429", "rate limit", "too many requests")


def is_transient_error(exc: BaseException) -> bool:
    """Retry network failures and rate limits, never contract reverts"""
    if isinstance(exc, ContractLogicError):
        return False
    if isinstance(exc, (aiohttp.ClientError, asyncio.TimeoutError, ConnectionError)):
        return True
    message = str(exc).lower()
    return any(marker in message for marker in RATE_LIMIT_MARKERS)


@dataclass(frozen=True)
class ChainLookup:
    """Tagged result of a chain read"""

    status: LookupStatus
    value: Any = None
    error: Optional[str] = None

    @classmethod
    def exists(cls, value: Any) -> "ChainLookup":
        return cls(LookupStatus.EXISTS, value=value)

    @classmethod
    def does_not_exist(cls, reason: Optional[str] = None) -> "ChainLookup":
        return cls(LookupStatus.DOES_NOT_EXIST, error=reason)

    @classmethod
    def unknown(cls, error: str) -> "ChainLookup":
        return cls(LookupStatus.UNKNOWN, error=error)

    @property
    def found(self) -> bool:
        return self.status is LookupStatus.EXISTS

    @property
    def missing(self) -> bool:
        return self.status is LookupStatus.DOES_NOT_EXIST


@dataclass(frozen=True)
class TokenMetadata:
    """Decoded on-chain metadata struct"""

    fid: int
    traits: Dict[str, str] = field(default_factory=dict)
    minted_at: Optional[datetime] = None


@dataclass
class ChainConfig:
    """Chain endpoint and retry policy"""

    rpc_url: str
    contract_address: str
    request_timeout: int = 30
    retry_attempts: int = 5
    retry_min_wait: float = 2.0
    retry_max_wait: float = 30.0

    @classmethod
    def from_settings(cls) -> "ChainConfig":
        return cls(
            rpc_url=CHAIN_RPC_URL,
            contract_address=NFT_CONTRACT_ADDRESS,
            request_timeout=CHAIN_REQUEST_TIMEOUT,
            retry_attempts=CHAIN_RETRY_ATTEMPTS,
        )


def _decode_timestamp(raw: Any) -> Optional[datetime]:
    """uint256 unix seconds -> aware datetime, None when unset or out of range"""
    seconds = int(raw or 0)
    if not seconds:
        return None
    try:
        return datetime.fromtimestamp(seconds, UTC)
    except (OverflowError, OSError, ValueError):
        logger.warning(f"Ignoring out-of-range mintedAt {seconds}")
        return None


def decode_metadata(raw: Any) -> TokenMetadata:
    """
    Decode the getMetadata struct (tuple or named tuple) into TokenMetadata
    """
    if hasattr(raw, "_asdict"):
        values = dict(raw._asdict())
    else:
        values = {
            component["name"]: item
            for component, item in zip(METADATA_COMPONENTS, raw)
        }

    traits = {
        trait: str(values[source])
        for source, trait in TRAIT_FIELDS.items()
        if values.get(source)
    }
    minted_at = _decode_timestamp(values.get("mintedAt"))

    return TokenMetadata(fid=int(values.get("fid") or 0), traits=traits, minted_at=minted_at)


class ChainReader:
    """
    Read-only client for the NFT collection contract

    Uses web3.py AsyncWeb3 over HTTP. Transient failures are retried with
    exponential backoff; once attempts are exhausted the lookup is UNKNOWN.
    """

    def __init__(self, config: ChainConfig, contract: Any = None):
        """
        Args:
            config: Chain endpoint and retry policy
            contract: Pre-built contract object (tests), built from config if None
        """
        self.config = config

        if contract is None:
            if not config.rpc_url or not config.contract_address:
                raise ConfigurationError(
                    "CHAIN_RPC_URL and NFT_CONTRACT_ADDRESS must be configured"
                )
            w3 = AsyncWeb3(
                AsyncHTTPProvider(
                    config.rpc_url,
                    request_kwargs={"timeout": aiohttp.ClientTimeout(total=config.request_timeout)},
                )
            )
            contract = w3.eth.contract(
                address=AsyncWeb3.to_checksum_address(config.contract_address),
                abi=NFT_CONTRACT_ABI,
            )
            logger.info(f"ChainReader initialized for contract {config.contract_address}")

        self.contract = contract

    @property
    def contract_address(self) -> str:
        return self.config.contract_address

    async def _raw_call(self, function_name: str, *args: Any) -> Any:
        return await getattr(self.contract.functions, function_name)(*args).call()

    async def _call(self, function_name: str, *args: Any) -> Any:
        retrying = AsyncRetrying(
            retry=retry_if_exception(is_transient_error),
            stop=stop_after_attempt(self.config.retry_attempts),
            wait=wait_exponential(
                multiplier=1,
                min=self.config.retry_min_wait,
                max=self.config.retry_max_wait,
            ),
            before_sleep=before_sleep_log(std_logger, logging.WARNING),
            reraise=True,
        )
        return await retrying(self._raw_call, function_name, *args)

    async def _lookup(self, function_name: str, *args: Any) -> ChainLookup:
        try:
            value = await self._call(function_name, *args)
        except ContractLogicError as e:
            return ChainLookup.does_not_exist(f"{function_name} reverted: {e}")
        except CHAIN_ERRORS as e:
            logger.warning(f"Chain call {function_name}{args} failed: {e}")
            return ChainLookup.unknown(f"{function_name} failed: {e}")
        return ChainLookup.exists(value)

    async def owner_of(self, token_id: int) -> ChainLookup:
        """
        Current holder of a token

        Returns:
            EXISTS(lowercase address), DOES_NOT_EXIST on revert/zero address, or UNKNOWN
        """
        lookup = await self._lookup("ownerOf", token_id)
        if not lookup.found:
            return lookup
        owner = str(lookup.value).lower()
        if not owner or owner == ZERO_ADDRESS:
            return ChainLookup.does_not_exist("zero address owner")
        return ChainLookup.exists(owner)

    async def token_id_to_fid(self, token_id: int) -> ChainLookup:
        """fid bound to a token id, DOES_NOT_EXIST when the id is not minted"""
        lookup = await self._lookup("tokenIdToFid", token_id)
        if not lookup.found:
            return lookup
        fid = int(lookup.value)
        if fid == 0:
            return ChainLookup.does_not_exist("token not minted")
        return ChainLookup.exists(fid)

    async def read_token_metadata(self, token_id: int) -> ChainLookup:
        """On-chain metadata by token id"""
        return await self._metadata_lookup("getMetadata", token_id)

    async def read_metadata(self, fid: int) -> ChainLookup:
        """On-chain metadata by fid (logical key)"""
        return await self._metadata_lookup("getMetadataByFid", fid)

    async def _metadata_lookup(self, function_name: str, key: int) -> ChainLookup:
        lookup = await self._lookup(function_name, key)
        if not lookup.found:
            return lookup
        try:
            metadata = decode_metadata(lookup.value)
        except (TypeError, ValueError, KeyError, OverflowError) as e:
            return ChainLookup.unknown(f"{function_name} returned undecodable metadata: {e}")
        if metadata.fid == 0:
            return ChainLookup.does_not_exist("empty metadata")
        return ChainLookup.exists(metadata)

    async def total_supply(self) -> ChainLookup:
        """Number of minted tokens"""
        lookup = await self._lookup("totalSupply")
        if not lookup.found:
            return lookup
        return ChainLookup.exists(int(lookup.value))


# Global instance
_chain_reader: Optional[ChainReader] = None


def get_chain_reader() -> ChainReader:
    """Get or create the process-wide ChainReader"""
    global _chain_reader
    if _chain_reader is None:
        _chain_reader = ChainReader(ChainConfig.from_settings())
    return _chain_reader
