"""Generated environment artifact for the rollup deployment scripts."""

from dataclasses import dataclass
from typing import List, Tuple

from orbitraas.models import DeploymentConfig

REDACTED = "***"


@dataclass(frozen=True)
class EnvEntry:
    key: str
    value: str
    secret: bool = False


class EnvFile:
    """Ordered KEY=value entries; secret entries are masked by ``redacted``."""

    def __init__(self, entries: List[EnvEntry]):
        self.entries: Tuple[EnvEntry, ...] = tuple(entries)

    def keys(self) -> List[str]:
        return [entry.key for entry in self.entries]

    def render(self) -> str:
        return "".join(f"{entry.key}={entry.value}\n" for entry in self.entries)

    def redacted(self) -> str:
        return "".join(
            f"{entry.key}={REDACTED if entry.secret else entry.value}\n" for entry in self.entries
        )

    def __repr__(self) -> str:
        return f"EnvFile({self.keys()!r})"


def build_env_file(config: DeploymentConfig) -> EnvFile:
    credentials = config.credentials
    metadata = config.metadata

    entries = [
        EnvEntry("DEPLOYER_PRIVATE_KEY", credentials.deployer_private_key, secret=True),
        EnvEntry("BATCH_POSTER_PRIVATE_KEY", credentials.batch_poster_private_key, secret=True),
        EnvEntry("VALIDATOR_PRIVATE_KEY", credentials.validator_private_key, secret=True),
        EnvEntry("AVAIL_ADDR_SEED", credentials.avail_addr_seed, secret=True),
        EnvEntry("AVAIL_APP_ID", metadata.avail_app_id),
        EnvEntry("FALLBACKS3_ENABLE", "true" if metadata.fallback_s3_enable else "false"),
    ]

    if metadata.fallback_s3_enable:
        fallback = (
            ("FALLBACKS3_ACCESS_KEY", credentials.fallback_s3_access_key, True),
            ("FALLBACKS3_SECRET_KEY", credentials.fallback_s3_secret_key, True),
            ("FALLBACKS3_REGION", credentials.fallback_s3_region, False),
            ("FALLBACKS3_OBJECT_PREFIX", credentials.fallback_s3_object_prefix, False),
            ("FALLBACKS3_BUCKET", credentials.fallback_s3_bucket, False),
        )
        for key, value, secret in fallback:
            if value is not None:
                entries.append(EnvEntry(key, value, secret=secret))

    entries.append(EnvEntry("PARENT_CHAIN_RPC", metadata.parent_chain_rpc))
    return EnvFile(entries)
