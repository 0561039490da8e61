"""Domain models for governance requests, call data and signatures."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from eth_utils import keccak

from .exceptions import ConfigurationError

UINT32_MAX = 2**32 - 1
DEFAULT_DERIVATION_PATH = "m/44'/60'/0'/0/0"


class ChainFamily(str, Enum):
    """Chain families with distinct call-data and digest conventions."""
    EVM = "evm"
    SOLANA = "solana"
    MOVE = "move"
    TON = "ton"
    STARKNET = "starknet"


class SignerMode(str, Enum):
    """Custody model selected on the command line."""
    KMS = "kms"
    MNEMONIC = "mnemonic"
    LOCAL = "local"


class SignatureScheme(str, Enum):
    SECP256K1 = "secp256k1"
    ED25519 = "ed25519"


# ============ Governance Operations ============

MESSAGE_LIB_ROLE = keccak(text="MESSAGE_LIB_ROLE")


@dataclass(frozen=True)
class AddOrRemoveSigner:
    """Add (active=True) or remove (active=False) a DVN signer."""
    signer_address: str
    active: bool

    name = "add_or_remove_signer"

    def output_params(self) -> Dict[str, Any]:
        return {"signerAddress": self.signer_address, "shouldRevoke": not self.active}

    def info_params(self, quorum: int) -> Dict[str, Any]:
        return {
            "quorum": quorum,
            "signerAddress": self.signer_address,
            "shouldRevoke": not self.active,
        }


@dataclass(frozen=True)
class SetQuorum:
    new_quorum: int

    name = "set_quorum"

    def __post_init__(self) -> None:
        if self.new_quorum < 1:
            raise ConfigurationError("new_quorum must be at least 1")

    def output_params(self) -> Dict[str, Any]:
        return {"newQuorum": self.new_quorum}

    def info_params(self, quorum: int) -> Dict[str, Any]:
        return {"oldQuorum": quorum, "newQuorum": self.new_quorum}


@dataclass(frozen=True)
class GrantRevokeRole:
    """Grant (grant=True) or revoke a role on the DVN contract."""
    target_address: str
    grant: bool
    role_id: bytes = MESSAGE_LIB_ROLE

    name = "grant_revoke_role"

    @property
    def function_signature(self) -> str:
        fn = "grantRole" if self.grant else "revokeRole"
        return f"function {fn}(bytes32 _role, address _account)"

    def output_params(self) -> Dict[str, Any]:
        return {
            "roleId": "0x" + self.role_id.hex(),
            "address": self.target_address,
            "grant": self.grant,
        }

    def info_params(self, quorum: int) -> Dict[str, Any]:
        return {
            "quorum": quorum,
            "address": self.target_address,
            "accessSignature": self.function_signature,
        }


GovernanceOperation = Union[AddOrRemoveSigner, SetQuorum, GrantRevokeRole]


# ============ Chain Targets ============

@dataclass(frozen=True)
class ChainTarget:
    """A DVN deployment on one chain."""
    chain_name: str
    family: ChainFamily
    contract_address: str
    vid: int

    def __post_init__(self) -> None:
        if not 0 <= self.vid <= UINT32_MAX:
            raise ConfigurationError(f"vid {self.vid} for {self.chain_name} does not fit in 32 bits")


# ============ Call Data ============

@dataclass(frozen=True)
class BytesCallData:
    """Call data already encoded in the chain's native byte layout."""
    data: bytes

    def to_hex(self) -> str:
        return "0x" + self.data.hex()


@dataclass(frozen=True)
class TypedField:
    """A call argument that keeps its on-chain type until hashing."""
    name: str
    type: str  # felt252 | u32 | u256 | bool
    value: Any


@dataclass(frozen=True)
class StructuredCallData:
    """Call data serialized lazily at hash time."""
    function_name: str
    fields: Tuple[TypedField, ...] = ()

    def get(self, name: str) -> Any:
        for f in self.fields:
            if f.name == name:
                return f.value
        raise KeyError(name)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"functionName": self.function_name}
        for f in self.fields:
            out[f.name] = f.value
        return out


CallData = Union[BytesCallData, StructuredCallData]


# ============ Signatures ============

@dataclass(frozen=True)
class Signature:
    """A signature plus the signer identity used for ordering."""
    signature: str  # 0x-prefixed hex
    address: str

    @property
    def raw_bytes(self) -> bytes:
        return bytes.fromhex(self.signature.removeprefix("0x"))

    def to_dict(self) -> Dict[str, str]:
        return {"signature": self.signature, "address": self.address}


# ============ Signer Descriptors ============
# Descriptors name where key material lives; the material itself is only
# loaded inside a signer backend at signing time.

@dataclass(frozen=True)
class CustodialKey:
    key_id: str
    region: str


@dataclass(frozen=True)
class DerivedMnemonic:
    """Mnemonic + derivation path held in a secret store."""
    secret_name: str
    region: str


@dataclass(frozen=True)
class RawMnemonic:
    phrase: str = field(repr=False)
    derivation_path: str = DEFAULT_DERIVATION_PATH


SignerDescriptor = Union[CustodialKey, DerivedMnemonic, RawMnemonic]


# ============ Request / Result ============

@dataclass(frozen=True)
class GovernanceRequest:
    """Root aggregate for one invocation. Never mutated once built."""
    operation: GovernanceOperation
    targets: Tuple[ChainTarget, ...]
    quorum: int
    expiration: int
    signer_mode: SignerMode
    signers: Tuple[SignerDescriptor, ...]
    environment: str = "mainnet"

    def __post_init__(self) -> None:
        if self.quorum < 1:
            raise ConfigurationError("quorum must be at least 1")
        if self.expiration < 0:
            raise ConfigurationError("expiration must be a non-negative timestamp")
        if not self.targets:
            raise ConfigurationError("at least one target chain is required")


QuorumPayload = Union[str, List[str], List[Dict[str, str]]]


@dataclass
class ChainResult:
    """Outcome of one chain pipeline."""
    target: ChainTarget
    call_data: Any = None
    digest: Optional[bytes] = None
    payload: Optional[QuorumPayload] = None
    signatures: List[Signature] = field(default_factory=list)
    info: Dict[str, Any] = field(default_factory=dict)
    expiration: int = 0
    error: Optional[Dict[str, Any]] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self, include_status: bool = False) -> Dict[str, Any]:
        if not self.ok:
            return {"status": "failed", "error": self.error}
        out: Dict[str, Any] = {
            "args": {
                "target": self.target.contract_address,
                "signatures": self.payload,
                "callData": self.call_data,
                "expiration": self.expiration,
                "vid": str(self.target.vid),
            },
            "info": {
                "signatures": [s.to_dict() for s in self.signatures],
                "hashCallData": "0x" + self.digest.hex() if self.digest is not None else None,
                **self.info,
            },
        }
        if include_status:
            out["status"] = "ok"
        return out
