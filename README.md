# helixchain

Building blocks for a proof-of-stake chain in which validators are weighted by
"torque": stake, gear angle and efficiency combine into the voting power of
each validator. The package is a library; it has no command-line entry point.

## Installation

```
pip install helixchain
```

To run the test suite:

```
pip install "helixchain[test]"
pytest
```

## What is inside

| Module | Purpose |
| --- | --- |
| `helixchain.crypto` | Keccak-256 hashing, Ed25519 key management and signing, Merkle trees with proofs, key derivation, XOR payload encryption |
| `helixchain.compression` | Raw DEFLATE compression with a configurable level |
| `helixchain.config` | Node configuration with defaults, loadable from TOML |
| `helixchain.address` | Address formats (user, validator, contract, multisig, gear), validation and checksums |
| `helixchain.consensus` | Validators, transactions, blocks, votes and the consensus round state |
| `helixchain.rotary` | The validator registry: proposer selection, voting torque, genesis validators, block hashing and Merkle roots |
| `helixchain.gas` | Gas estimation, base-plus-tip dynamic pricing, refunds and congestion tracking |
| `helixchain.delegation` | Validator registration, delegation, reward distribution and slashing |

## Hashing and Merkle trees

```python
from helixchain.crypto import CryptoManager, MerkleTree, keccak256

digest = keccak256(b"hello")                      # 32 raw bytes
hex_digest = CryptoManager.hash_sha256(b"hello")  # hex string of the Keccak-256 digest

tree = MerkleTree.from_hashes(["hash1", "hash2", "hash3", "hash4"])
proof = tree.get_proof(0)
assert tree.verify_proof("hash1", proof, 0)
```

Despite its name, `CryptoManager.hash_sha256` returns the hex Keccak-256
digest. `MerkleTree.from_data` hashes each raw item first and builds the tree
from those leaf hashes; an odd node at any level is paired with itself.

## Keys and signatures

```python
from helixchain.crypto import CryptoManager

crypto = CryptoManager()
crypto.generate_keypair("node")
signature = crypto.sign_message("node", b"test message")
assert crypto.verify_signature(signature, b"test message")

exported_bytes = crypto.export_private_key("node")
crypto.clear_keypair("node")
crypto.import_keypair("restored", exported_bytes)
```

Keys are held in memory only. Operations on an unknown identifier, or with a
key of the wrong length, raise `CryptoError`. `encrypt_data` and
`decrypt_data` XOR the payload with the first 32 bytes of the key; they are not
authenticated encryption.

## Addresses

```python
from helixchain.address import Address, AddressType

owner = Address.parse("0x" + "ab" * 20)
contract = Address.generate_contract_address(owner, 7)
assert contract.address_type() is AddressType.CONTRACT
print(owner.checksum())
```

`Address.parse` raises `ValueError` for text that is not `0x` followed by 40 or
41 hexadecimal digits. `GearParameters` checks its angle, torque ratio, gear
ratio and efficiency against their allowed ranges and raises `ValueError`
outside them. `AddressGenerator` creates secp256k1 key pairs and random
gear-derived addresses.

## Validators and consensus

```python
from helixchain.rotary import ValidatorRegistry, genesis_validators

registry = ValidatorRegistry(genesis_validators())
proposer = registry.select_block_proposer(10.0)
print(proposer.address, registry.calculate_voting_torque(10.0))
```

A `Validator` produces torque `stake * sin(beta) / network_load * efficiency`;
it may vote when it is active and its torque is at least 8. A validator whose
angle fails the self-lock test is refused by the `ValidatorRegistry` with
`ValueError`. `select_block_proposer` raises `ValueError` when no validator is
eligible, and `process_vote` raises `KeyError` for an unknown validator.
`compute_block_hash` hashes a block's compact JSON form with its hash and
signature blanked, and `calculate_merkle_root` returns `"empty"` for a block
without transactions. `Transaction` and `Block` convert to and from plain
dictionaries with `to_dict` and `from_dict`.

## Gas

```python
from helixchain.gas import GasCalculator

calculator = GasCalculator()
estimate = calculator.calculate_transaction_gas("transfer", 100, 1, 0)
print(estimate.estimated_gas, estimate.gas_price.max_fee, estimate.total_cost)

usage = calculator.process_transaction_gas(100_000, 80_000, 1_000_000_000)
print(usage.used, usage.remaining, usage.refunded, usage.burned)
```

Processing a transaction whose gas used exceeds its limit raises `ValueError`.
`optimize_gas_price` raises the price for faster confirmation targets, and the
last 100 processed gas prices feed `get_gas_metrics`.

## Delegation

`helixchain.delegation.DelegationManager` registers validators with a
commission rate in basis points (0 to 10000), accepts and withdraws
delegations within each validator's minimum and maximum stake, distributes
epoch rewards pro rata to active delegations, and records slashing events that
halve a validator's performance score. Failures raise subclasses of
`DelegationError`, such as `ValidatorNotFoundError`, `InsufficientStakeError`
or `ExceedsMaxStakeError`. A plain string passed as a slashing reason is
recorded as `SlashingReason.OTHER` with that text.

## Configuration

```python
from helixchain.config import Config

config = Config.default()
print(config.network.chain_id, config.api.port)

config = Config.load("node.toml")
```

The TOML file has the tables `network`, `consensus`, `api`, `database`,
`security` and `wallet`, with the same field names as the configuration
classes. A missing field or a value of the wrong type raises `ValueError`.

## Compression

```python
from helixchain.compression import HelixCompression, dlc_compress

codec = HelixCompression()
codec.set_level(9)
packed = codec.compress(b"payload" * 100)
assert codec.decompress(packed) == b"payload" * 100
assert codec.decompress(dlc_compress(b"abc")) == b"abc"
```

Corrupt or truncated input to `decompress` raises `ValueError`.

## What this package does not do

It runs no node: there is no peer-to-peer networking, no HTTP API, no
persistent chain storage or database, and no command-line tool. Blocks are not
executed against account balances; the registry, consensus state and
delegation manager keep their data in memory for the lifetime of the objects.