"""
Integration tests for the confidential deposit → transfer → withdraw lifecycle.

Everything runs in-process: the pool contract is a list of leaves behind the
StorageReader protocol, so the crypto, Merkle and prover layers are exercised
together without a node.

Run with: python -m pytest tests/integration/test_privacy_lifecycle.py -v
"""

import asyncio

import pytest

from obelysk_privacy.core.models import PrivacyNote
from obelysk_privacy.crypto.ae_hints import (
    create_transfer_hint_bundle,
    decrypt_ae_hint_from_ciphertext,
    hybrid_decrypt,
)
from obelysk_privacy.crypto.curve import G, generate_key_pair, is_on_curve, scalar_mult
from obelysk_privacy.crypto.elgamal import add_ciphertexts, encrypt, subtract_ciphertexts
from obelysk_privacy.crypto.nullifier import derive_key_image, is_nullifier_spent, nullifier_to_felt
from obelysk_privacy.crypto.pedersen import commit, commitment_to_felt, create_note
from obelysk_privacy.crypto.range_proof import generate_balance_proof, verify_balance_proof
from obelysk_privacy.crypto.sigma import generate_same_encryption_proof, verify_same_encryption_proof
from obelysk_privacy.crypto.stealth import derive_stealth_address, is_stealth_address_for, recover_stealth_key
from obelysk_privacy.crypto.transfer import TransferProof, generate_transfer_proof, verify_transfer_proof
from obelysk_privacy.merkle.lean_imt import rebuild_tree
from obelysk_privacy.merkle.storage import OnChainMerkleProver


class InMemoryPool:
    """Minimal pool contract: deposits append leaves, withdrawals record nullifiers."""

    def __init__(self):
        self.leaves = []
        self.nullifiers = set()

    def deposit(self, commitment_felt: str) -> int:
        self.leaves.append(int(commitment_felt, 16))
        return len(self.leaves) - 1

    async def read_leaf_count(self) -> int:
        return len(self.leaves)

    async def read_node(self, level: int, index: int) -> int:
        return self.leaves[index]

    async def read_root(self) -> int:
        return rebuild_tree(self.leaves).root

    async def is_nullifier_used(self, felt: str) -> bool:
        return felt in self.nullifiers


@pytest.fixture
def pool():
    return InMemoryPool()


def test_deposit_and_withdraw(pool):
    prover = OnChainMerkleProver(pool, network="devnet", pool_address="0x1")

    # A few unrelated deposits around ours
    for value in (1, 2, 3):
        pool.deposit(commitment_to_felt(create_note(value).commitment))
    note = PrivacyNote.from_note_data(create_note(10**17))
    felt = commitment_to_felt(note.commitment)
    note = note.mark_confirmed(pool.deposit(felt), "0xdeposit")
    pool.deposit(commitment_to_felt(create_note(4).commitment))

    async def withdraw():
        proof = await prover.get_proof(felt)
        check = await prover.verify_root_against_chain()
        spent_before = await is_nullifier_spent(note.nullifier(), pool.is_nullifier_used)
        pool.nullifiers.add(nullifier_to_felt(note.nullifier()))
        spent_after = await is_nullifier_spent(note.nullifier(), pool.is_nullifier_used)
        return proof, check, spent_before, spent_after

    proof, check, spent_before, spent_after = asyncio.run(withdraw())
    assert proof.leaf_index == 3
    assert proof.verify()
    assert check.match
    assert not spent_before
    assert spent_after
    assert note.mark_spent("0xwithdraw").spent


def test_confidential_transfer():
    sender = generate_key_pair()
    receiver = generate_key_pair()
    auditor = generate_key_pair()

    balance, amount = 5_000, 1_250
    r_balance = 77
    balance_ct = encrypt(balance, sender.public_key, randomness=r_balance)

    # Same randomness for both sides so the encryptions can be linked by proof
    r = 4242
    to_receiver = encrypt(amount, receiver.public_key, randomness=r)
    from_sender = encrypt(amount, sender.public_key, randomness=r)
    link = generate_same_encryption_proof(r, from_sender, to_receiver)
    assert verify_same_encryption_proof(link, from_sender, to_receiver)

    old_commitment = commit(balance, r_balance)
    balance_proof = generate_balance_proof(balance, amount, r_balance, bits=16)
    assert verify_balance_proof(balance_proof, old_commitment, amount, bits=16)

    transfer = generate_transfer_proof(
        sender.private_key, receiver.public_key, amount, balance, r_balance, randomness=r, bits=16
    )
    calldata = transfer.to_felts()
    assert transfer.receiver_ciphertext == to_receiver
    assert verify_transfer_proof(
        TransferProof.from_felts(calldata), sender.public_key, receiver.public_key, old_commitment, bits=16
    )

    new_balance_ct = subtract_ciphertexts(balance_ct, from_sender)
    hints = create_transfer_hint_bundle(
        amount, balance - amount, r, sender.public_key, receiver.public_key, auditor.public_key
    )
    assert decrypt_ae_hint_from_ciphertext(hints.receiver_hint, to_receiver, receiver.private_key) == amount
    assert decrypt_ae_hint_from_ciphertext(hints.auditor_hint, to_receiver, auditor.private_key) == amount
    assert hybrid_decrypt(new_balance_ct, sender.private_key, max_value=2**13) == balance - amount

    receiver_total = add_ciphertexts(to_receiver, encrypt(10, receiver.public_key, randomness=5))
    assert hybrid_decrypt(receiver_total, receiver.private_key, max_value=2**11) == amount + 10


def test_stealth_payment_scan_and_spend():
    spend = generate_key_pair()
    view = generate_key_pair()
    outputs = [derive_stealth_address(generate_key_pair().public_key, view.public_key) for _ in range(3)]
    ours = derive_stealth_address(spend.public_key, view.public_key)
    outputs.insert(1, ours)

    found = [
        o for o in outputs
        if is_stealth_address_for(spend.public_key, view.private_key, o.ephemeral_public_key, o.stealth_public_key)
    ]
    assert found == [ours]

    recovered = recover_stealth_key(spend.private_key, view.private_key, ours.ephemeral_public_key)
    assert recovered.stealth_public_key == ours.stealth_public_key
    assert scalar_mult(recovered.stealth_private_key, G) == ours.stealth_public_key

    # One key image per stealth output, so a second spend is detectable
    image = derive_key_image(recovered.stealth_private_key, ours.stealth_public_key)
    assert is_on_curve(image)
    assert image != derive_key_image(spend.private_key, spend.public_key)
