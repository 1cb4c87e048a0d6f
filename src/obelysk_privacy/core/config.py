"""
Runtime configuration: networks, hash scheme and Merkle fetch tuning.

Settings are plain dataclasses. PrivacySettings.from_env() reads the
OBELYSK_* environment variables:

    OBELYSK_NETWORK              devnet | sepolia | mainnet (default sepolia)
    OBELYSK_RPC_URL              overrides the active network's RPC endpoint
    OBELYSK_POOL_ADDRESS         overrides the active network's pool contract
    OBELYSK_HASH_SCHEME          poseidon | blake2b (default poseidon)
    OBELYSK_BATCH_SIZE           concurrent leaf reads (default 10)
    OBELYSK_READ_TIMEOUT         seconds per storage read (default 15)
    OBELYSK_COORDINATOR_URL      coordinator base URL (unset = no fast path)
    OBELYSK_COORDINATOR_TIMEOUT  seconds (default 5)
    OBELYSK_DLOG_BOUND           baby-step/giant-step search bound (default 2^40)
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field, replace

from obelysk_privacy.crypto.curve import felt_to_int
from obelysk_privacy.crypto.elgamal import DEFAULT_MAX_VALUE
from obelysk_privacy.crypto.hashing import HashScheme, get_hash_scheme

UNSET_ADDRESS = "0x0"


@dataclass(frozen=True)
class NetworkConfig:
    """One Starknet network and the privacy pool deployed on it."""
    name: str
    rpc_url: str
    privacy_pools_address: str = UNSET_ADDRESS

    @property
    def is_deployed(self) -> bool:
        return felt_to_int(self.privacy_pools_address) != 0


DEFAULT_NETWORKS: dict[str, NetworkConfig] = {
    "devnet": NetworkConfig(
        name="devnet",
        rpc_url="http://localhost:5050",
    ),
    "sepolia": NetworkConfig(
        name="sepolia",
        rpc_url="https://starknet-sepolia.g.alchemy.com/starknet/version/rpc/v0_7/demo",
        privacy_pools_address="0xd85ad03dcd91a075bef0f4226149cb7e43da795d2c1d33e3227c68bfbb78a7",
    ),
    "mainnet": NetworkConfig(
        name="mainnet",
        rpc_url="https://starknet-mainnet.public.blastapi.io",
    ),
}


@dataclass(frozen=True)
class PrivacySettings:
    """
    Settings for the prover, coordinator client and decryption bound.

    Raises:
        ValueError: On a non-positive batch size or timeout, an unknown hash
            scheme, or a negative discrete-log bound.
    """
    network: str = "sepolia"
    networks: Mapping[str, NetworkConfig] = field(default_factory=lambda: dict(DEFAULT_NETWORKS))
    hash_scheme: str = "poseidon"
    batch_size: int = 10
    read_timeout: float = 15.0
    coordinator_url: str | None = None
    coordinator_timeout: float = 5.0
    discrete_log_bound: int = DEFAULT_MAX_VALUE

    def __post_init__(self) -> None:
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {self.batch_size}")
        if self.read_timeout <= 0:
            raise ValueError(f"read_timeout must be positive, got {self.read_timeout}")
        if self.coordinator_timeout <= 0:
            raise ValueError(f"coordinator_timeout must be positive, got {self.coordinator_timeout}")
        if self.discrete_log_bound < 0:
            raise ValueError(f"discrete_log_bound must be non-negative, got {self.discrete_log_bound}")
        get_hash_scheme(self.hash_scheme)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> PrivacySettings:
        """Build settings from OBELYSK_* variables (os.environ by default)."""
        env = os.environ if environ is None else environ
        network = env.get("OBELYSK_NETWORK", "sepolia")

        networks = dict(DEFAULT_NETWORKS)
        rpc_url = env.get("OBELYSK_RPC_URL")
        pool_address = env.get("OBELYSK_POOL_ADDRESS")
        if rpc_url or pool_address:
            base = networks.get(network, NetworkConfig(name=network, rpc_url=""))
            networks[network] = replace(
                base,
                rpc_url=rpc_url or base.rpc_url,
                privacy_pools_address=pool_address or base.privacy_pools_address,
            )

        return cls(
            network=network,
            networks=networks,
            hash_scheme=env.get("OBELYSK_HASH_SCHEME", "poseidon"),
            batch_size=int(env.get("OBELYSK_BATCH_SIZE", "10")),
            read_timeout=float(env.get("OBELYSK_READ_TIMEOUT", "15")),
            coordinator_url=env.get("OBELYSK_COORDINATOR_URL") or None,
            coordinator_timeout=float(env.get("OBELYSK_COORDINATOR_TIMEOUT", "5")),
            discrete_log_bound=int(env.get("OBELYSK_DLOG_BOUND", str(DEFAULT_MAX_VALUE))),
        )

    def active_network(self) -> NetworkConfig:
        """
        The selected network.

        Raises:
            ValueError: If the network is unknown, has no RPC URL, or has no
                pool contract deployed.
        """
        config = self.networks.get(self.network)
        if config is None:
            raise ValueError(f"Unknown network: {self.network!r} (known: {sorted(self.networks)})")
        if not config.rpc_url:
            raise ValueError(f"No RPC URL configured for {self.network}")
        if not config.is_deployed:
            raise ValueError(f"Privacy pool not deployed on {self.network}")
        return config

    def hash(self) -> HashScheme:
        return get_hash_scheme(self.hash_scheme)
