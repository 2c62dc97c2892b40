"""Account addresses and gear-parameter derived identities."""

from __future__ import annotations

import logging
import math
import secrets
import struct
import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from .crypto import keccak256

logger = logging.getLogger(__name__)

_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")
_DECIMAL_DIGITS = frozenset("0123456789")
_FRICTION_COEFFICIENT = 0.15  # typical steel-on-steel


class AddressType(Enum):
    """The kind of account an address refers to."""

    USER = "user"
    VALIDATOR = "validator"
    CONTRACT = "contract"
    MULTISIG = "multisig"


def _tail(digest: bytes) -> str:
    """Hex of the last 20 bytes of a 32-byte digest."""
    return digest[12:].hex()


@dataclass(frozen=True)
class Address:
    """A textual account address such as ``0x…``."""

    value: str

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, address: str) -> Address:
        """Return an address after checking its format; raise ValueError if invalid."""
        if not cls.is_valid(address):
            raise ValueError("Invalid address format")
        return cls(address)

    @classmethod
    def from_public_key(cls, public_key: ec.EllipticCurvePublicKey | bytes) -> Address:
        """Derive an address from a secp256k1 public key or its SEC1 encoding."""
        if not isinstance(public_key, ec.EllipticCurvePublicKey):
            public_key = ec.EllipticCurvePublicKey.from_encoded_point(
                ec.SECP256K1(), bytes(public_key)
            )
        if not isinstance(public_key.curve, ec.SECP256K1):
            raise ValueError("public key is not on the secp256k1 curve")
        raw = public_key.public_bytes(
            serialization.Encoding.X962, serialization.PublicFormat.UncompressedPoint
        )
        return cls(f"0x{_tail(keccak256(raw[1:]))}")

    @classmethod
    def from_gear_parameters(cls, gear_params: GearParameters) -> Address:
        """Derive a deterministic ``0xg`` address from gear parameters."""
        payload = struct.pack(
            "<4d",
            gear_params.beta_angle,
            gear_params.torque_ratio,
            gear_params.gear_ratio,
            gear_params.efficiency,
        )
        return cls(f"0xg{_tail(keccak256(payload))}")

    @classmethod
    def generate_validator_address(cls, stake: int, beta_angle: float) -> Address:
        """Derive a ``0xv`` validator address from stake, angle and the current time."""
        payload = (
            b"validator:"
            + struct.pack("<Q", stake)
            + struct.pack("<d", beta_angle)
            + struct.pack("<q", int(time.time()))
        )
        return cls(f"0xv{_tail(keccak256(payload))}")

    @classmethod
    def generate_contract_address(cls, deployer: Address, nonce: int) -> Address:
        """Derive a ``0xc`` contract address from the deployer and a nonce."""
        payload = deployer.as_bytes() + struct.pack("<Q", nonce)
        return cls(f"0xc{_tail(keccak256(payload))}")

    @classmethod
    def generate_multisig_address(cls, owners: Iterable[Address], threshold: int) -> Address:
        """Derive a ``0xm`` multisig address from its owners and signing threshold."""
        payload = b"multisig:" + b"".join(owner.as_bytes() for owner in owners)
        payload += struct.pack("<I", threshold)
        return cls(f"0xm{_tail(keccak256(payload))}")

    @staticmethod
    def is_valid(address: str) -> bool:
        """Return whether ``address`` is ``0x`` followed by 40 or 41 hex digits."""
        if not address.startswith("0x"):
            return False
        body = address[2:]
        return len(body) in (40, 41) and all(c in _HEX_DIGITS for c in body)

    def address_type(self) -> AddressType:
        """Classify the address by its prefix."""
        prefixes = {
            "0xv": AddressType.VALIDATOR,
            "0xc": AddressType.CONTRACT,
            "0xm": AddressType.MULTISIG,
        }
        return prefixes.get(self.value[:3], AddressType.USER)

    def as_bytes(self) -> bytes:
        """Return the UTF-8 bytes of the address text."""
        return self.value.encode()

    def checksum(self) -> str:
        """Return the mixed-case checksummed form of the address."""
        body = self.value
        while body.startswith("0x"):
            body = body[2:]
        body = body.lower()
        digest = keccak256(body.encode())

        out = ["0x"]
        for i, char in enumerate(body):
            if char in _DECIMAL_DIGITS:
                out.append(char)
                continue
            byte = digest[i // 2]
            nibble = byte >> 4 if i % 2 == 0 else byte & 0xF
            out.append(char.upper() if nibble >= 8 and char.isascii() else char)
        return "".join(out)


@dataclass
class GearParameters:
    """Mechanical parameters that shape an account's gear identity."""

    beta_angle: float
    torque_ratio: float
    gear_ratio: float
    efficiency: float

    def __post_init__(self) -> None:
        if not 10.0 <= self.beta_angle <= 80.0:
            raise ValueError("Beta angle must be between 10 and 80 degrees")
        if not 0.1 <= self.torque_ratio <= 10.0:
            raise ValueError("Torque ratio must be between 0.1 and 10.0")
        if not 0.5 <= self.gear_ratio <= 5.0:
            raise ValueError("Gear ratio must be between 0.5 and 5.0")
        if not 0.1 <= self.efficiency <= 1.0:
            raise ValueError("Efficiency must be between 0.1 and 1.0")

    def calculate_torque(self, input_force: float) -> float:
        """Return the output torque for ``input_force``."""
        return (
            input_force
            * self.torque_ratio
            * self.efficiency
            * math.sin(math.radians(self.beta_angle))
        )

    def is_self_locking(self) -> bool:
        """Return whether friction keeps the gear from back-driving."""
        lead_angle = math.atan(self.gear_ratio / (2.0 * math.pi))
        return math.tan(lead_angle) <= _FRICTION_COEFFICIENT * math.cos(
            math.radians(self.beta_angle)
        )


@dataclass
class AddressMetadata:
    """An address together with how and when it was created."""

    address: Address
    gear_params: GearParameters
    address_type: AddressType
    creation_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class AddressGenerator:
    """Creates new key pairs and gear-derived addresses."""

    def generate_keypair(
        self,
    ) -> tuple[ec.EllipticCurvePrivateKey, ec.EllipticCurvePublicKey, Address]:
        """Return a fresh secp256k1 secret key, its public key and address."""
        secret_key = ec.generate_private_key(ec.SECP256K1())
        public_key = secret_key.public_key()
        return secret_key, public_key, Address.from_public_key(public_key)

    def generate_gear_address(
        self, beta_angle: float, stake: int
    ) -> tuple[GearParameters, Address]:
        """Pick random gear parameters for ``beta_angle`` and derive their address."""
        torque_ratio = 1.0 + secrets.randbelow(300) / 100.0
        gear_ratio = 0.5 + secrets.randbelow(450) / 100.0
        efficiency = 0.80 + secrets.randbelow(20) / 100.0

        gear_params = GearParameters(beta_angle, torque_ratio, gear_ratio, efficiency)
        logger.debug("generated gear address for stake %d", stake)
        return gear_params, Address.from_gear_parameters(gear_params)