from datetime import datetime, timezone
from types import SimpleNamespace

import pytest
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey

from helixchain.crypto import (
    CryptoError,
    CryptoManager,
    DigitalSignature,
    MerkleTree,
    keccak256,
)


def test_keccak256_of_empty_input():
    assert keccak256(b"").hex() == (
        "c5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470"
    )


def test_hash_sha256_is_hex_keccak():
    assert CryptoManager.hash_sha256(b"abc") == keccak256(b"abc").hex()


def test_keypair_generation():
    crypto = CryptoManager()
    public_bytes = crypto.generate_keypair("test")
    assert len(public_bytes) == 32
    assert crypto.list_keypairs() == ["test"]


def test_signature_verification():
    crypto = CryptoManager()
    crypto.generate_keypair("test")
    message = b"test message"
    signature = crypto.sign_message("test", message)
    assert crypto.verify_signature(signature, message) is True


def test_signature_rejects_other_message():
    crypto = CryptoManager()
    crypto.generate_keypair("test")
    signature = crypto.sign_message("test", b"test message")
    assert crypto.verify_signature(signature, b"other message") is False


def test_signature_rejects_tampered_signature():
    crypto = CryptoManager()
    crypto.generate_keypair("test")
    signature = crypto.sign_message("test", b"test message")
    bad = bytearray(signature.signature)
    bad[0] ^= 0xFF
    tampered = DigitalSignature(bytes(bad), signature.public_key, signature.message_hash)
    assert crypto.verify_signature(tampered, b"test message") is False


def test_signature_wrong_lengths_raise():
    crypto = CryptoManager()
    with pytest.raises(CryptoError):
        crypto.verify_signature(DigitalSignature(b"\x00" * 64, b"\x01" * 5, b""), b"m")
    with pytest.raises(CryptoError):
        crypto.verify_signature(DigitalSignature(b"\x00" * 3, b"\x01" * 32, b""), b"m")


def test_sign_message_unknown_identifier_raises():
    with pytest.raises(CryptoError):
        CryptoManager().sign_message("missing", b"m")


def test_merkle_tree():
    crypto = CryptoManager()
    tree = crypto.create_merkle_tree([b"data1", b"data2", b"data3"])
    assert tree.root != ""
    assert len(tree.leaves) == 3
    assert tree.leaves[0] == keccak256(b"data1").hex()
    assert [len(level) for level in tree.nodes] == [3, 2, 1]


def test_merkle_tree_empty():
    tree = CryptoManager().create_merkle_tree([])
    assert (tree.root, tree.leaves, tree.nodes) == ("", [], [])


def test_merkle_from_data_matches_manager():
    data = [b"a", b"b"]
    assert MerkleTree.from_data(data).root == CryptoManager().create_merkle_tree(data).root


def test_merkle_proof():
    hashes = ["hash1", "hash2", "hash3", "hash4"]
    tree = MerkleTree.from_hashes(hashes)
    proof = tree.get_proof(0)
    assert tree.verify_proof(hashes[0], proof, 0)


@pytest.mark.parametrize("index", [1, 2, 3])
def test_merkle_proof_every_leaf(index):
    hashes = ["hash1", "hash2", "hash3", "hash4"]
    tree = MerkleTree.from_hashes(hashes)
    proof = tree.get_proof(index)
    assert len(proof) == 2
    assert tree.verify_proof(hashes[index], proof, index)
    assert not tree.verify_proof("forged", proof, index)


def test_merkle_single_hash_is_root():
    tree = MerkleTree.from_hashes(["only"])
    assert tree.root == "only"
    assert tree.get_proof(0) == []


def test_encryption_decryption():
    crypto = CryptoManager()
    data = b"secret data"
    xor_material = CryptoManager.generate_random_bytes(32)
    encrypted = crypto.encrypt_data(data, xor_material)
    assert crypto.decrypt_data(encrypted, xor_material) == data


def test_encryption_short_key_raises():
    with pytest.raises(CryptoError):
        CryptoManager().encrypt_data(b"data", b"\x00" * 31)


def test_key_derivation():
    crypto = CryptoManager()
    seed = b"master seed"
    derived1 = crypto.derive_key(seed, "m/44'/0'/0'/0/0")
    derived2 = crypto.derive_key(seed, "m/44'/0'/0'/0/1")
    assert derived1 != derived2
    assert len(derived1) == 32
    assert len(derived2) == 32


def test_keypair_import_export():
    crypto = CryptoManager()
    original_public = crypto.generate_keypair("test")
    exported = crypto.export_private_key("test")
    assert crypto.clear_keypair("test") is True
    imported_public = crypto.import_keypair("test_imported", exported)
    assert original_public == imported_public
    assert crypto.verify_keypair("test_imported", original_public)


def test_import_wrong_length_raises():
    with pytest.raises(CryptoError):
        CryptoManager().import_keypair("k", b"\x01" * 31)


def test_clear_missing_keypair_returns_false():
    assert CryptoManager().clear_keypair("missing") is False


def test_get_public_key_missing_raises():
    with pytest.raises(CryptoError):
        CryptoManager().get_public_key("missing")


def test_random_bytes_generation():
    bytes1 = CryptoManager.generate_random_bytes(32)
    bytes2 = CryptoManager.generate_random_bytes(32)
    assert len(bytes1) == 32
    assert len(bytes2) == 32
    assert bytes1 != bytes2


def test_shared_secret():
    crypto = CryptoManager()
    ours_a = CryptoManager.generate_random_bytes(32)
    ours_b = CryptoManager.generate_random_bytes(32)
    theirs_a = CryptoManager.generate_random_bytes(32)
    theirs_b = CryptoManager.generate_random_bytes(32)
    shared_a = crypto.create_shared_secret(ours_a, theirs_b)
    shared_b = crypto.create_shared_secret(ours_b, theirs_a)
    assert len(shared_a) == 32
    assert len(shared_b) == 32
    assert shared_a == keccak256(ours_a + theirs_b)


def test_sign_data_without_keys_raises():
    with pytest.raises(CryptoError):
        CryptoManager().sign_data(b"data")


def _sample_block():
    return SimpleNamespace(
        height=7,
        timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc),
        previous_hash="prev",
        merkle_root="root",
        validator="val",
        signature="",
    )


def test_sign_block_verifies_with_public_key():
    crypto = CryptoManager()
    public_bytes = crypto.generate_keypair("node")
    block = _sample_block()
    signature = crypto.sign_block(block)
    assert len(signature) == 128
    expected_data = f"7{int(block.timestamp.timestamp())}prevrootval".encode()
    Ed25519PublicKey.from_public_bytes(public_bytes).verify(bytes.fromhex(signature), expected_data)
    block.signature = signature
    assert crypto.verify_block_signature(block) is True


def test_verify_block_signature_rejects_changed_block():
    crypto = CryptoManager()
    crypto.generate_keypair("node")
    block = _sample_block()
    block.signature = crypto.sign_block(block)
    block.height = 8
    assert crypto.verify_block_signature(block) is False


def test_verify_block_signature_rejects_bad_hex():
    crypto = CryptoManager()
    crypto.generate_keypair("node")
    block = _sample_block()
    block.signature = "not hex"
    assert crypto.verify_block_signature(block) is False