"""
Unit tests for obelysk_privacy.crypto.sigma — Fiat-Shamir challenges and Sigma proofs.
"""

from dataclasses import replace

import pytest

from obelysk_privacy.core.errors import MalformedSerializationError
from obelysk_privacy.crypto.curve import CURVE_ORDER, STARK_PRIME, G, H, scalar_mult
from obelysk_privacy.crypto.elgamal import encrypt
from obelysk_privacy.crypto.hashing import Blake2bFieldHash
from obelysk_privacy.crypto.pedersen import commit
from obelysk_privacy.crypto.sigma import (
    AmountEncryptionProof,
    BlindingProof,
    PedersenOpeningProof,
    SameEncryptionProof,
    SchnorrProof,
    compute_challenge,
    generate_amount_encryption_proof,
    generate_blinding_proof,
    generate_opening_proof,
    generate_same_encryption_proof,
    generate_schnorr_proof,
    verify_amount_encryption_proof,
    verify_blinding_proof,
    verify_opening_proof,
    verify_same_encryption_proof,
    verify_schnorr_proof,
)

SK = 0xC0FFEE
PK = scalar_mult(SK, G)


class TestChallenge:

    def test_empty_transcript(self):
        assert compute_challenge() == 0

    def test_point_expands_to_coordinates(self):
        assert compute_challenge(G) == compute_challenge(G.x, G.y)

    def test_ints_reduced_mod_prime(self):
        assert compute_challenge(STARK_PRIME + 5, 1) == compute_challenge(5, 1)

    def test_string_encoding(self):
        assert compute_challenge("ab") == compute_challenge(0x6162)

    def test_result_below_order(self):
        assert 0 <= compute_challenge(G, H, 12345) < CURVE_ORDER

    def test_order_sensitive(self):
        assert compute_challenge(1, 2) != compute_challenge(2, 1)

    def test_bool_rejected(self):
        with pytest.raises(TypeError):
            compute_challenge(True)

    def test_scheme_injected(self):
        assert compute_challenge(1, 2, scheme=Blake2bFieldHash()) != compute_challenge(1, 2)


class TestSchnorr:

    def test_roundtrip(self):
        proof = generate_schnorr_proof(SK, PK)
        assert verify_schnorr_proof(proof, PK)

    def test_wrong_public_key(self):
        proof = generate_schnorr_proof(SK, PK)
        assert not verify_schnorr_proof(proof, scalar_mult(SK + 1, G))

    def test_tampered_response(self):
        proof = generate_schnorr_proof(SK, PK)
        assert not verify_schnorr_proof(replace(proof, response=proof.response + 1), PK)

    def test_substituted_challenge(self):
        proof = generate_schnorr_proof(SK, PK)
        assert not verify_schnorr_proof(replace(proof, challenge=proof.challenge + 1), PK)

    def test_mismatched_key_pair_rejected(self):
        with pytest.raises(ValueError):
            generate_schnorr_proof(SK, scalar_mult(SK + 1, G))

    def test_felts_roundtrip(self):
        proof = generate_schnorr_proof(SK, PK)
        felts = proof.to_felts()
        assert len(felts) == 4
        assert verify_schnorr_proof(SchnorrProof.from_felts(felts), PK)

    def test_from_felts_wrong_length(self):
        with pytest.raises(MalformedSerializationError):
            SchnorrProof.from_felts(["0x1", "0x2", "0x3"])


class TestOpeningProof:

    def test_roundtrip(self):
        c = commit(500, 99)
        proof = generate_opening_proof(500, 99, c)
        assert verify_opening_proof(proof, c)

    def test_other_commitment(self):
        proof = generate_opening_proof(500, 99, commit(500, 99))
        assert not verify_opening_proof(proof, commit(501, 99))

    def test_wrong_witness(self):
        c = commit(500, 99)
        proof = generate_opening_proof(500, 98, c)
        assert not verify_opening_proof(proof, c)

    def test_felts_roundtrip(self):
        c = commit(1, 2)
        proof = generate_opening_proof(1, 2, c)
        parsed = PedersenOpeningProof.from_felts(proof.to_felts())
        assert parsed == proof
        assert verify_opening_proof(parsed, c)


class TestBlindingProof:

    def test_roundtrip(self):
        target = scalar_mult(4321, H)
        proof = generate_blinding_proof(4321, target)
        assert verify_blinding_proof(proof, target)

    def test_target_with_g_component_rejected_at_generation(self):
        with pytest.raises(ValueError):
            generate_blinding_proof(4321, commit(1, 4321))

    def test_other_target(self):
        proof = generate_blinding_proof(4321, scalar_mult(4321, H))
        assert not verify_blinding_proof(proof, scalar_mult(4322, H))

    def test_base_g_does_not_verify(self):
        # A discrete log on G says nothing about H
        proof = generate_schnorr_proof(SK, PK)
        forged = BlindingProof(proof.commitment, proof.response, proof.challenge)
        assert not verify_blinding_proof(forged, PK)

    def test_tampered_response(self):
        target = scalar_mult(7, H)
        proof = generate_blinding_proof(7, target)
        assert not verify_blinding_proof(replace(proof, response=proof.response + 1), target)

    def test_felts_roundtrip(self):
        target = scalar_mult(7, H)
        proof = generate_blinding_proof(7, target)
        assert BlindingProof.from_felts(proof.to_felts()) == proof


class TestAmountEncryptionProof:

    @pytest.fixture
    def statement(self):
        amount, r, r_a = 250, 9001, 4242
        ct = encrypt(amount, PK, randomness=r)
        c_a = commit(amount, r_a)
        proof = generate_amount_encryption_proof(amount, r, r_a, PK, ct, c_a)
        return proof, ct, c_a

    def test_roundtrip(self, statement):
        proof, ct, c_a = statement
        assert verify_amount_encryption_proof(proof, PK, ct, c_a)

    def test_commitment_to_other_amount(self, statement):
        proof, ct, _ = statement
        assert not verify_amount_encryption_proof(proof, PK, ct, commit(251, 4242))

    def test_ciphertext_to_other_key(self, statement):
        proof, _, c_a = statement
        other = encrypt(250, scalar_mult(SK + 1, G), randomness=9001)
        assert not verify_amount_encryption_proof(proof, scalar_mult(SK + 1, G), other, c_a)

    def test_mismatched_amounts_rejected_at_generation(self):
        ct = encrypt(250, PK, randomness=1)
        with pytest.raises(ValueError):
            generate_amount_encryption_proof(250, 1, 2, PK, ct, commit(249, 2))

    def test_tampered_responses(self, statement):
        proof, ct, c_a = statement
        for field in ("amount_response", "randomness_response", "blinding_response"):
            tampered = replace(proof, **{field: getattr(proof, field) + 1})
            assert not verify_amount_encryption_proof(tampered, PK, ct, c_a)

    def test_felts_roundtrip(self, statement):
        proof, ct, c_a = statement
        felts = proof.to_felts()
        assert len(felts) == 10
        parsed = AmountEncryptionProof.from_felts(felts)
        assert parsed == proof
        assert verify_amount_encryption_proof(parsed, PK, ct, c_a)

    def test_from_felts_wrong_length(self, statement):
        proof, _, _ = statement
        with pytest.raises(MalformedSerializationError):
            AmountEncryptionProof.from_felts(proof.to_felts()[:-1])


class TestSameEncryption:

    def test_roundtrip(self):
        other_pk = scalar_mult(31337, G)
        a = encrypt(10, PK, randomness=555)
        b = encrypt(10, other_pk, randomness=555)
        proof = generate_same_encryption_proof(555, a, b)
        assert verify_same_encryption_proof(proof, a, b)

    def test_different_randomness_rejected_at_generation(self):
        a = encrypt(10, PK, randomness=555)
        b = encrypt(10, PK, randomness=556)
        with pytest.raises(ValueError):
            generate_same_encryption_proof(555, a, b)

    def test_verifier_checks_equality(self):
        a = encrypt(10, PK, randomness=555)
        b = encrypt(10, PK, randomness=556)
        proof = generate_same_encryption_proof(555, a, a)
        assert not verify_same_encryption_proof(proof, a, b)

    def test_felts_roundtrip(self):
        a = encrypt(1, PK, randomness=8)
        proof = generate_same_encryption_proof(8, a, a)
        assert verify_same_encryption_proof(SameEncryptionProof.from_felts(proof.to_felts()), a, a)
