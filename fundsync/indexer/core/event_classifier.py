"""
Event classifier for SFT and vault contract logs.
Maps a raw log's signature hash to a known event kind and decodes its ABI fields.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Sequence, Union

import structlog
from eth_abi import decode
from eth_abi.exceptions import DecodingError
from web3 import Web3

from fundsync.core.config import ChainConfig
from fundsync.core.exceptions import EventDecodeError

from .types import RawLog


logger = structlog.get_logger(__name__)


class EventKind(Enum):
    """Event kinds emitted by the watched contracts."""
    TRANSFER_TOKEN = "TransferToken"
    TRANSFER_VALUE = "TransferValue"
    SLOT_CHANGED = "SlotChanged"
    CLAIM = "Claim"


# Event parameter schemas; indexed parameters arrive in topics[1:]
TRANSFER_TOKEN_EVENT_ABI = [
    {"indexed": True, "name": "_from", "type": "address"},
    {"indexed": True, "name": "_to", "type": "address"},
    {"indexed": True, "name": "_tokenId", "type": "uint256"},
]

TRANSFER_VALUE_EVENT_ABI = [
    {"indexed": True, "name": "_fromTokenId", "type": "uint256"},
    {"indexed": True, "name": "_toTokenId", "type": "uint256"},
    {"indexed": False, "name": "_value", "type": "uint256"},
]

SLOT_CHANGED_EVENT_ABI = [
    {"indexed": True, "name": "_tokenId", "type": "uint256"},
    {"indexed": True, "name": "_oldSlot", "type": "uint256"},
    {"indexed": True, "name": "_newSlot", "type": "uint256"},
]

CLAIM_EVENT_ABI = [
    {"indexed": True, "name": "owner", "type": "address"},
    {"indexed": False, "name": "amount", "type": "uint256"},
]

EVENT_ABIS = {
    EventKind.TRANSFER_TOKEN: TRANSFER_TOKEN_EVENT_ABI,
    EventKind.TRANSFER_VALUE: TRANSFER_VALUE_EVENT_ABI,
    EventKind.SLOT_CHANGED: SLOT_CHANGED_EVENT_ABI,
    EventKind.CLAIM: CLAIM_EVENT_ABI,
}


def event_signature_hash(signature: str) -> str:
    """keccak256 of an event signature as a 0x-prefixed lowercase hex string."""
    return Web3.to_hex(Web3.keccak(text=signature)).lower()


EVENT_HASHES: Dict[EventKind, str] = {
    kind: event_signature_hash(ChainConfig.EVENT_SIGNATURES[kind.value])
    for kind in EventKind
}

TRANSFER_TOKEN_EVENT_HASH = EVENT_HASHES[EventKind.TRANSFER_TOKEN]
TRANSFER_VALUE_EVENT_HASH = EVENT_HASHES[EventKind.TRANSFER_VALUE]
SLOT_CHANGED_EVENT_HASH = EVENT_HASHES[EventKind.SLOT_CHANGED]
CLAIM_EVENT_HASH = EVENT_HASHES[EventKind.CLAIM]

SFT_EVENT_HASHES = [
    TRANSFER_TOKEN_EVENT_HASH,
    TRANSFER_VALUE_EVENT_HASH,
    SLOT_CHANGED_EVENT_HASH,
]
VAULT_EVENT_HASHES = [CLAIM_EVENT_HASH]


def strip_0x(value: str) -> str:
    if value.startswith("0x") or value.startswith("0X"):
        return value[2:]
    return value


def format_token_id(token_id: int) -> str:
    """Canonical token id: 0x followed by 64 lowercase hex digits."""
    return "0x" + format(token_id, "064x")


def is_same_address(a: Optional[str], b: Optional[str]) -> bool:
    """Case-insensitive address equality; None never matches."""
    if not a or not b:
        return False
    return a.lower() == b.lower()


def _hex_to_bytes(value: str) -> bytes:
    try:
        return bytes.fromhex(strip_0x(value))
    except ValueError as e:
        raise EventDecodeError(f"Invalid hex payload: {value!r}") from e


def decode_log(
    inputs: List[Dict[str, Any]],
    data: str,
    topics: Sequence[str],
) -> Dict[str, Any]:
    """
    Decode a log against an event parameter schema.

    Args:
        inputs: Event inputs (name, type, indexed)
        data: Hex encoded non-indexed parameters
        topics: Indexed parameter topics, without the signature topic

    Returns:
        Mapping of parameter name to decoded value

    Raises:
        EventDecodeError: If the log does not match the schema shape
    """
    indexed = [item for item in inputs if item.get("indexed")]
    non_indexed = [item for item in inputs if not item.get("indexed")]

    if len(topics) != len(indexed):
        raise EventDecodeError(
            f"Expected {len(indexed)} indexed topics, got {len(topics)}",
            {"topics": list(topics)}
        )

    decoded: Dict[str, Any] = {}
    try:
        for item, topic in zip(indexed, topics):
            if item["type"] in ("string", "bytes") or item["type"].endswith("]"):
                # dynamic indexed values are only available as their hash
                decoded[item["name"]] = topic
                continue
            (decoded[item["name"]],) = decode([item["type"]], _hex_to_bytes(topic))

        if non_indexed:
            values = decode(
                [item["type"] for item in non_indexed],
                _hex_to_bytes(data),
            )
            for item, value in zip(non_indexed, values):
                decoded[item["name"]] = value
    except DecodingError as e:
        raise EventDecodeError(f"Failed to decode log data: {e}") from e

    for item in inputs:
        if item["type"] == "address" and isinstance(decoded.get(item["name"]), str):
            decoded[item["name"]] = Web3.to_checksum_address(decoded[item["name"]])

    return decoded


@dataclass(frozen=True)
class TransferTokenEvent:
    """SFT Transfer(_from, _to, _tokenId)."""
    kind: ClassVar[EventKind] = EventKind.TRANSFER_TOKEN
    from_address: str
    to_address: str
    token_id: int

    @property
    def is_mint(self) -> bool:
        return is_same_address(self.from_address, ChainConfig.ZERO_ADDRESS)

    @property
    def is_burn(self) -> bool:
        return is_same_address(self.to_address, ChainConfig.ZERO_ADDRESS)


@dataclass(frozen=True)
class TransferValueEvent:
    """SFT TransferValue(_fromTokenId, _toTokenId, _value)."""
    kind: ClassVar[EventKind] = EventKind.TRANSFER_VALUE
    from_token_id: int
    to_token_id: int
    value: int


@dataclass(frozen=True)
class SlotChangedEvent:
    """SFT SlotChanged(_tokenId, _oldSlot, _newSlot)."""
    kind: ClassVar[EventKind] = EventKind.SLOT_CHANGED
    token_id: int
    old_slot: int
    new_slot: int


@dataclass(frozen=True)
class ClaimEvent:
    """Vault Claim(owner, amount); amount is 18-decimal fixed point."""
    kind: ClassVar[EventKind] = EventKind.CLAIM
    owner: str
    amount: int


DecodedEvent = Union[TransferTokenEvent, TransferValueEvent, SlotChangedEvent, ClaimEvent]


class EventClassifier:
    """
    Classifier for watched contract logs.

    Unknown signatures classify to None; known signatures whose payload
    does not match the schema raise EventDecodeError.
    """

    def __init__(self):
        self.logger = logger.bind(service="event_classifier")
        self._kinds_by_hash = {event_hash: kind for kind, event_hash in EVENT_HASHES.items()}
        self._builders = {
            EventKind.TRANSFER_TOKEN: self._build_transfer_token,
            EventKind.TRANSFER_VALUE: self._build_transfer_value,
            EventKind.SLOT_CHANGED: self._build_slot_changed,
            EventKind.CLAIM: self._build_claim,
        }

    def kind_of(self, raw_log: RawLog) -> Optional[EventKind]:
        """Event kind for a log's signature hash, or None if unknown."""
        if not raw_log.signature:
            return None
        return self._kinds_by_hash.get(raw_log.signature.lower())

    def classify(self, raw_log: RawLog) -> Optional[DecodedEvent]:
        """
        Classify and decode a raw log.

        Args:
            raw_log: Log fetched from the chain

        Returns:
            Typed event, or None for unknown signatures
        """
        kind = self.kind_of(raw_log)
        if kind is None:
            self.logger.debug(
                "Ignoring unknown event signature",
                signature=raw_log.signature,
                block_number=raw_log.block_number,
                log_index=raw_log.log_index
            )
            return None

        fields = decode_log(EVENT_ABIS[kind], raw_log.data, raw_log.topics[1:])
        return self._builders[kind](fields)

    @staticmethod
    def _build_transfer_token(fields: Dict[str, Any]) -> TransferTokenEvent:
        return TransferTokenEvent(
            from_address=fields["_from"],
            to_address=fields["_to"],
            token_id=int(fields["_tokenId"]),
        )

    @staticmethod
    def _build_transfer_value(fields: Dict[str, Any]) -> TransferValueEvent:
        return TransferValueEvent(
            from_token_id=int(fields["_fromTokenId"]),
            to_token_id=int(fields["_toTokenId"]),
            value=int(fields["_value"]),
        )

    @staticmethod
    def _build_slot_changed(fields: Dict[str, Any]) -> SlotChangedEvent:
        return SlotChangedEvent(
            token_id=int(fields["_tokenId"]),
            old_slot=int(fields["_oldSlot"]),
            new_slot=int(fields["_newSlot"]),
        )

    @staticmethod
    def _build_claim(fields: Dict[str, Any]) -> ClaimEvent:
        return ClaimEvent(owner=fields["owner"], amount=int(fields["amount"]))
