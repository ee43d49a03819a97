"""
zkv-attest: submit a RISC Zero proof to zkVerify and persist its attestation.
Convenience exports for the most common entry points.
"""

from .version import __version__  # noqa: F401

# Core config & errors
from .config import AttestConfig  # noqa: F401
from .errors import (  # noqa: F401
    ZkvError,
    AuthenticationError,
    NetworkConnectionError,
    SubmissionError,
    OutOfOrderEventError,
    AttestationLookupError,
    PersistenceError,
    AttestationTimeoutError,
    RpcError,
)

# Data model
from .bundle import ProofBundle, load_proof_bundle  # noqa: F401
from .types import (  # noqa: F401
    ProofSystem,
    ProtocolVersion,
    IncludedInBlock,
    Finalized,
    AttestationConfirmed,
    AttestationRecord,
)

# Flow
from .session import ZkVerifySession, Submission, start_session  # noqa: F401
from .tracker import EventTracker, TrackerPhase, TrackerState  # noqa: F401
from .finalizer import AttestationFinalizer, load_attestation  # noqa: F401
from .pipeline import run_attestation, run_attestation_sync  # noqa: F401

__all__ = [
    "__version__",
    # Core
    "AttestConfig",
    "ZkvError", "AuthenticationError", "NetworkConnectionError", "SubmissionError",
    "OutOfOrderEventError", "AttestationLookupError", "PersistenceError",
    "AttestationTimeoutError", "RpcError",
    # Data model
    "ProofBundle", "load_proof_bundle",
    "ProofSystem", "ProtocolVersion",
    "IncludedInBlock", "Finalized", "AttestationConfirmed", "AttestationRecord",
    # Flow
    "ZkVerifySession", "Submission", "start_session",
    "EventTracker", "TrackerPhase", "TrackerState",
    "AttestationFinalizer", "load_attestation",
    "run_attestation", "run_attestation_sync",
]
