"""
Runtime configuration: network endpoint, file locations, and timeouts.

- Loads sane defaults and supports overrides via environment variables (ZKV_*).
- Resolves the WebSocket endpoint from a named network preset.
- Never stores the secret credential itself, only the name of the variable
  that holds it (see `zkv_attest.credentials`).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from .types import ProtocolVersion

NETWORKS: Dict[str, str] = {
    "testnet": "wss://testnet-rpc.zkverify.io",
    "local": "ws://127.0.0.1:9944",
}

_LOOPBACK_HOSTS = ("127.0.0.1", "localhost", "::1")

DEFAULT_SEED_ENV = "SEED_PHRASE"
DEFAULT_PROOF_PATH = "proof.json"
DEFAULT_OUTPUT_PATH = "attestation.json"


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    v = os.getenv(name)
    return v if v is not None and v != "" else default


def _ensure_ws_url(url: str) -> str:
    """
    Accept ws:// and wss:// only; plain ws:// is restricted to loopback hosts
    since the session handshake carries the account credential.
    """
    parsed = urlparse(url)
    if parsed.scheme not in ("ws", "wss") or not parsed.hostname:
        raise ValueError(f"URL must start with ws:// or wss://, got: {url!r}")
    if parsed.scheme == "ws" and parsed.hostname not in _LOOPBACK_HOSTS:
        raise ValueError(f"refusing unencrypted ws:// to non-local host: {url!r}")
    return url


def resolve_endpoint(network: str, ws_url: Optional[str] = None) -> str:
    """Return the WebSocket URL for `network`, preferring an explicit `ws_url`."""
    if ws_url:
        return _ensure_ws_url(ws_url)
    try:
        return NETWORKS[network]
    except KeyError:
        known = ", ".join(sorted(NETWORKS))
        raise ValueError(
            f"unknown network {network!r} (known: {known}); set ZKV_WS_URL for a custom endpoint"
        ) from None


@dataclass(slots=True)
class AttestConfig:
    # Network
    network: str = "testnet"
    ws_url: Optional[str] = None
    # Credential lookup (name of the env var, never the value)
    seed_env: str = DEFAULT_SEED_ENV
    # Files
    proof_path: Path = field(default_factory=lambda: Path(DEFAULT_PROOF_PATH))
    output_path: Path = field(default_factory=lambda: Path(DEFAULT_OUTPUT_PATH))
    proof_version: str = ProtocolVersion.V1_2.value
    # Timeouts (seconds)
    connect_timeout: float = 15.0
    request_timeout: float = 30.0
    submit_timeout: float = 1800.0
    lookup_timeout: float = 60.0

    def __post_init__(self) -> None:
        self.proof_path = Path(self.proof_path)
        self.output_path = Path(self.output_path)
        if self.ws_url:
            _ensure_ws_url(self.ws_url)
        for name in ("connect_timeout", "request_timeout", "submit_timeout", "lookup_timeout"):
            value = float(getattr(self, name))
            if value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")
            setattr(self, name, value)

    @classmethod
    def from_env(cls, prefix: str = "ZKV_") -> "AttestConfig":
        """
        Create config from environment variables:

        ZKV_NETWORK           (testnet | local | custom)
        ZKV_WS_URL            (ws/wss) overrides the preset
        ZKV_SEED_ENV          (name of the credential variable, default SEED_PHRASE)
        ZKV_PROOF_PATH        (default proof.json)
        ZKV_OUTPUT_PATH       (default attestation.json)
        ZKV_PROOF_VERSION     (V1_0 | V1_1 | V1_2)
        ZKV_CONNECT_TIMEOUT   (float seconds)
        ZKV_REQUEST_TIMEOUT   (float seconds)
        ZKV_SUBMIT_TIMEOUT    (float seconds)
        ZKV_LOOKUP_TIMEOUT    (float seconds)
        """
        return cls(
            network=_env(f"{prefix}NETWORK", "testnet") or "testnet",
            ws_url=_env(f"{prefix}WS_URL"),
            seed_env=_env(f"{prefix}SEED_ENV", DEFAULT_SEED_ENV) or DEFAULT_SEED_ENV,
            proof_path=Path(_env(f"{prefix}PROOF_PATH", DEFAULT_PROOF_PATH) or DEFAULT_PROOF_PATH),
            output_path=Path(_env(f"{prefix}OUTPUT_PATH", DEFAULT_OUTPUT_PATH) or DEFAULT_OUTPUT_PATH),
            proof_version=_env(f"{prefix}PROOF_VERSION", ProtocolVersion.V1_2.value) or ProtocolVersion.V1_2.value,
            connect_timeout=float(_env(f"{prefix}CONNECT_TIMEOUT", "15.0") or 15.0),
            request_timeout=float(_env(f"{prefix}REQUEST_TIMEOUT", "30.0") or 30.0),
            submit_timeout=float(_env(f"{prefix}SUBMIT_TIMEOUT", "1800.0") or 1800.0),
            lookup_timeout=float(_env(f"{prefix}LOOKUP_TIMEOUT", "60.0") or 60.0),
        )

    @classmethod
    def with_overrides(
        cls, base: Optional["AttestConfig"] = None, **overrides: Any
    ) -> "AttestConfig":
        """
        Build from an existing config plus keyword overrides.
        Unknown keys and None values are ignored.
        """
        base = base or cls.from_env()
        data = {f.name: getattr(base, f.name) for f in fields(cls)}
        data.update({k: v for k, v in overrides.items() if k in data and v is not None})
        return cls(**data)

    @property
    def endpoint(self) -> str:
        return resolve_endpoint(self.network, self.ws_url)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "network": self.network,
            "endpoint": self.endpoint,
            "seed_env": self.seed_env,
            "proof_path": str(self.proof_path),
            "output_path": str(self.output_path),
            "proof_version": self.proof_version,
            "connect_timeout": self.connect_timeout,
            "request_timeout": self.request_timeout,
            "submit_timeout": self.submit_timeout,
            "lookup_timeout": self.lookup_timeout,
        }


__all__ = ["AttestConfig", "NETWORKS", "resolve_endpoint"]
