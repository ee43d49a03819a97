"""
zkv_attest.bundle
=================

`ProofBundle` and the loader for the proof file written by the RISC Zero host
program. The file is a JSON object with exactly three fields:

    {
      "proof":      "0x<hex CBOR-encoded receipt>",
      "image_id":   "0x<hex guest image id>",
      "pub_inputs": "0x<hex journal bytes>"
    }

`pub_inputs` may also be a list of hex strings or integers for proof systems
that expose public signals as separate field elements.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Tuple, Union

from .errors import SubmissionError
from .types import ProtocolVersion
from .utils.bytes import from_hex, is_hex, normalize_hex, to_hex

PROOF_FIELDS = frozenset({"proof", "image_id", "pub_inputs"})

PublicInput = Union[str, int]


@dataclass(frozen=True)
class ProofBundle:
    proof: bytes
    vk: str
    public_inputs: Tuple[PublicInput, ...]
    version: ProtocolVersion = ProtocolVersion.V1_2
    # The host program emits the journal as one hex blob; keep that shape on the wire.
    single_public_input: bool = False

    def __post_init__(self) -> None:
        if not self.proof:
            raise SubmissionError("proof bytes are empty")
        if not self.vk:
            raise SubmissionError("verification key (image id) is missing")

    def to_proof_data(self) -> Dict[str, Any]:
        """Render the `proofData` payload expected by the verifier."""
        if self.single_public_input and len(self.public_inputs) == 1:
            signals: Any = self.public_inputs[0]
        else:
            signals = list(self.public_inputs)
        return {
            "proof": to_hex(self.proof),
            "vk": self.vk,
            "publicSignals": signals,
            "version": self.version.value,
        }

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Any],
        *,
        version: Union[str, ProtocolVersion] = ProtocolVersion.V1_2,
    ) -> "ProofBundle":
        if not isinstance(data, Mapping):
            raise SubmissionError(f"proof document must be a JSON object, got {type(data).__name__}")
        keys = set(data)
        missing = sorted(PROOF_FIELDS - keys)
        extra = sorted(keys - PROOF_FIELDS)
        if missing:
            raise SubmissionError(f"proof document missing field(s): {', '.join(missing)}")
        if extra:
            raise SubmissionError(f"proof document has unexpected field(s): {', '.join(extra)}")

        try:
            tag = ProtocolVersion.parse(version)
        except ValueError as e:
            raise SubmissionError(str(e)) from e

        proof_raw = data["proof"]
        if not is_hex(proof_raw):
            raise SubmissionError("'proof' must be a hex string")
        image_id = data["image_id"]
        if not is_hex(image_id) or not from_hex(image_id):
            raise SubmissionError("'image_id' must be a non-empty hex string")

        pub = data["pub_inputs"]
        single = isinstance(pub, str)
        if single:
            pub = [pub]
        if not isinstance(pub, list):
            raise SubmissionError("'pub_inputs' must be a hex string or a list")
        inputs = []
        for i, value in enumerate(pub):
            if isinstance(value, bool) or not isinstance(value, (str, int)):
                raise SubmissionError(f"pub_inputs[{i}] must be a hex string or integer")
            if isinstance(value, str):
                if not is_hex(value):
                    raise SubmissionError(f"pub_inputs[{i}] is not valid hex")
                value = normalize_hex(value)
            inputs.append(value)

        return cls(
            proof=from_hex(proof_raw),
            vk=normalize_hex(image_id),
            public_inputs=tuple(inputs),
            version=tag,
            single_public_input=single,
        )


def load_proof_bundle(
    path: Union[str, Path],
    *,
    version: Union[str, ProtocolVersion] = ProtocolVersion.V1_2,
) -> ProofBundle:
    """Read and validate a proof file. Any problem is a `SubmissionError`."""
    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise SubmissionError(f"proof file not found: {p}") from e
    except OSError as e:
        raise SubmissionError(f"cannot read proof file {p}: {e}") from e
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise SubmissionError(f"invalid JSON in proof file {p} ({e})") from e
    return ProofBundle.from_dict(data, version=version)


__all__ = ["ProofBundle", "load_proof_bundle", "PROOF_FIELDS"]
