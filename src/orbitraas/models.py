"""Shared domain models for Orbit RaaS."""

import copy
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from .errors import ConfigurationError


@dataclass(frozen=True)
class OperatorCredentials:
    """Signing keys and fallback storage secrets held only in process memory.

    Never serialized into the deployment record; ``repr`` hides every value.
    """

    deployer_private_key: str = field(repr=False)
    batch_poster_private_key: str = field(repr=False)
    validator_private_key: str = field(repr=False)
    avail_addr_seed: str = field(repr=False)
    fallback_s3_access_key: Optional[str] = field(default=None, repr=False)
    fallback_s3_secret_key: Optional[str] = field(default=None, repr=False)
    fallback_s3_region: Optional[str] = field(default=None, repr=False)
    fallback_s3_object_prefix: Optional[str] = field(default=None, repr=False)
    fallback_s3_bucket: Optional[str] = field(default=None, repr=False)


@dataclass(frozen=True)
class RollupMetadata:
    """Public rollup description. Contains no secrets."""

    name: str
    chain_id: int
    avail_app_id: str
    parent_chain_rpc: str
    fallback_s3_enable: bool
    local_rpc_endpoint: str
    explorer_url: str

    REQUIRED_FIELDS = (
        "name",
        "chain_id",
        "avail_app_id",
        "parent_chain_rpc",
        "fallback_s3_enable",
        "local_rpc_endpoint",
        "explorer_url",
    )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Any) -> "RollupMetadata":
        if not isinstance(data, dict):
            raise ConfigurationError("Rollup metadata must be a mapping.")

        missing = [key for key in cls.REQUIRED_FIELDS if key not in data]
        if missing:
            raise ConfigurationError(f"Rollup metadata is missing fields: {', '.join(missing)}")

        unknown = sorted(set(data.keys()) - set(cls.REQUIRED_FIELDS))
        if unknown:
            raise ConfigurationError(f"Unknown rollup metadata fields: {', '.join(unknown)}")

        chain_id = data["chain_id"]
        if isinstance(chain_id, bool) or not isinstance(chain_id, int) or chain_id < 0:
            raise ConfigurationError("Rollup metadata chain_id must be a non-negative integer.")
        if not isinstance(data["fallback_s3_enable"], bool):
            raise ConfigurationError("Rollup metadata fallback_s3_enable must be a boolean.")

        for key in ("name", "avail_app_id", "parent_chain_rpc", "local_rpc_endpoint", "explorer_url"):
            if not isinstance(data[key], str):
                raise ConfigurationError(f"Rollup metadata {key} must be a string.")

        return cls(
            name=data["name"],
            chain_id=chain_id,
            avail_app_id=data["avail_app_id"],
            parent_chain_rpc=data["parent_chain_rpc"],
            fallback_s3_enable=data["fallback_s3_enable"],
            local_rpc_endpoint=data["local_rpc_endpoint"],
            explorer_url=data["explorer_url"],
        )


@dataclass(frozen=True)
class DeploymentConfig:
    """Operator credentials combined with the public metadata for one deploy."""

    credentials: OperatorCredentials
    metadata: RollupMetadata


class DeploymentStatus:
    UNDEPLOYED = "undeployed"
    DEPLOYING = "deploying"
    DEPLOYED = "deployed"
    DEPLOY_FAILED = "deploy_failed"

    ALL = (UNDEPLOYED, DEPLOYING, DEPLOYED, DEPLOY_FAILED)


@dataclass
class DeploymentRecord:
    """In-memory reflection of the provisioned rollup infrastructure."""

    deployed: bool = False
    logs: List[str] = field(default_factory=list)
    metadata: Optional[RollupMetadata] = None
    process_handles: List[str] = field(default_factory=list)
    status: str = DeploymentStatus.UNDEPLOYED
    last_error: Optional[str] = None

    def copy(self) -> "DeploymentRecord":
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "deployed": self.deployed,
            "logs": list(self.logs),
            "metadata": self.metadata.to_dict() if self.metadata else None,
            "container_ids": list(self.process_handles),
            "status": self.status,
            "last_error": self.last_error,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DeploymentRecord":
        metadata = data.get("metadata")
        status = data.get("status", DeploymentStatus.UNDEPLOYED)
        if status not in DeploymentStatus.ALL:
            raise ConfigurationError(f"Unknown deployment status: {status}")

        record = cls(
            deployed=bool(data.get("deployed", False)),
            logs=[str(line) for line in data.get("logs", [])],
            metadata=RollupMetadata.from_dict(metadata) if metadata is not None else None,
            process_handles=[str(handle) for handle in data.get("container_ids", [])],
            status=status,
            last_error=data.get("last_error"),
        )
        if record.deployed and record.metadata is None:
            raise ConfigurationError("Deployed record has no rollup metadata.")
        return record
