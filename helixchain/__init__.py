"""Building blocks for a torque-weighted proof-of-stake chain."""

__version__ = "1.0.0"

__all__ = [
    "address",
    "compression",
    "config",
    "consensus",
    "crypto",
    "delegation",
    "gas",
    "rotary",
]