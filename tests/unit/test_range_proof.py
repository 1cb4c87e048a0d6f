"""
Unit tests for obelysk_privacy.crypto.range_proof — OR-Sigma range proofs & balance proofs.
"""

from dataclasses import replace

import pytest

from obelysk_privacy.core.errors import (
    InsufficientBalanceError,
    MalformedSerializationError,
    OutOfRangeError,
)
from obelysk_privacy.crypto.curve import CURVE_ORDER, G, H, random_scalar, scalar_mult
from obelysk_privacy.crypto.hashing import DEFAULT_HASH
from obelysk_privacy.crypto.pedersen import commit
from obelysk_privacy.crypto.sigma import generate_blinding_proof
from obelysk_privacy.crypto.range_proof import (
    MAX_BIT_LENGTH,
    BalanceProof,
    RangeProof,
    _RangeProofBuilder,
    balance_residue,
    generate_balance_proof,
    generate_range_proof,
    verify_balance_proof,
    verify_range_proof,
)


# ==============================================================================
# Range Proof tests
# ==============================================================================


class TestRangeProof:
    """Tests for bit-decomposition range proofs."""

    @pytest.mark.parametrize("value", [0, 1, 42, 255])
    def test_8_bit_values(self, value):
        r = random_scalar()
        proof = generate_range_proof(value, r, bits=8)
        assert proof.bits == 8
        assert verify_range_proof(proof, commit(value, r), bits=8)

    def test_16_bit_max(self):
        r = random_scalar()
        value = 2**16 - 1
        assert verify_range_proof(generate_range_proof(value, r, bits=16), commit(value, r), bits=16)

    def test_64_bit_default(self):
        r = random_scalar()
        value = 10**18
        proof = generate_range_proof(value, r)
        assert proof.bits == 64
        assert verify_range_proof(proof, commit(value, r))

    def test_single_bit(self):
        r = random_scalar()
        assert verify_range_proof(generate_range_proof(1, r, bits=1), commit(1, r), bits=1)

    def test_bit_blindings_recombine(self):
        r = random_scalar()
        proof = generate_range_proof(0, r, bits=4)
        # bit blindings must recombine to r
        assert verify_range_proof(proof, commit(0, r), bits=4)
        assert not verify_range_proof(proof, commit(0, (r + 1) % CURVE_ORDER), bits=4)

    def test_wrong_claimed_value(self):
        r = random_scalar()
        proof = generate_range_proof(100, r, bits=8)
        assert not verify_range_proof(proof, commit(101, r), bits=8)

    def test_bits_mismatch(self):
        r = random_scalar()
        proof = generate_range_proof(3, r, bits=8)
        assert not verify_range_proof(proof, commit(3, r), bits=16)

    def test_value_too_large(self):
        with pytest.raises(OutOfRangeError):
            generate_range_proof(256, random_scalar(), bits=8)

    def test_negative_value(self):
        with pytest.raises(OutOfRangeError):
            generate_range_proof(-1, random_scalar(), bits=8)

    @pytest.mark.parametrize("bits", [0, MAX_BIT_LENGTH + 1, 253])
    def test_unsupported_width(self, bits):
        with pytest.raises(OutOfRangeError):
            generate_range_proof(0, random_scalar(), bits=bits)

    def test_max_width_stays_below_curve_order(self):
        assert MAX_BIT_LENGTH == 251
        assert (1 << MAX_BIT_LENGTH) < CURVE_ORDER

    def test_max_width_proof(self):
        r = random_scalar()
        value = (1 << MAX_BIT_LENGTH) - 1
        proof = generate_range_proof(value, r, bits=MAX_BIT_LENGTH)
        assert verify_range_proof(proof, commit(value, r), bits=MAX_BIT_LENGTH)

    def test_wrapped_value_rejected(self):
        # n - 1 decomposes into 252 bits and would open commit(-1, r)
        r = random_scalar()
        with pytest.raises(OutOfRangeError):
            generate_range_proof(CURVE_ORDER - 1, r, bits=252)
        wrapped = _RangeProofBuilder(CURVE_ORDER - 1, r, 252, DEFAULT_HASH).build()
        assert not verify_range_proof(wrapped, commit(-1, r), bits=252)
        assert not verify_range_proof(wrapped, commit(-1, r), bits=MAX_BIT_LENGTH)

    def test_out_of_range_is_value_error(self):
        with pytest.raises(ValueError):
            generate_range_proof(2**8, 1, bits=8)


class TestRangeProofTampering:

    @pytest.fixture
    def setup(self):
        r = random_scalar()
        proof = generate_range_proof(5, r, bits=4)
        return proof, commit(5, r)

    def test_swapped_challenges(self, setup):
        proof, c = setup
        bit = proof.bit_or_proofs[0]
        swapped = replace(
            bit,
            proof0=replace(bit.proof0, challenge=bit.proof1.challenge),
            proof1=replace(bit.proof1, challenge=bit.proof0.challenge),
        )
        tampered = replace(proof, bit_or_proofs=(swapped, *proof.bit_or_proofs[1:]))
        assert not verify_range_proof(tampered, c, bits=4)

    def test_altered_response(self, setup):
        proof, c = setup
        bit = proof.bit_or_proofs[2]
        forged = replace(bit, proof1=replace(bit.proof1, response=bit.proof1.response + 1))
        tampered = replace(
            proof,
            bit_or_proofs=(*proof.bit_or_proofs[:2], forged, *proof.bit_or_proofs[3:]),
        )
        assert not verify_range_proof(tampered, c, bits=4)

    def test_altered_aggregate_challenge(self, setup):
        proof, c = setup
        tampered = replace(proof, aggregate_challenge=(proof.aggregate_challenge + 1) % CURVE_ORDER)
        assert not verify_range_proof(tampered, c, bits=4)

    def test_substituted_bit_commitment(self, setup):
        proof, c = setup
        commitments = list(proof.bit_commitments)
        commitments[1] = G
        tampered = replace(proof, bit_commitments=tuple(commitments))
        assert not verify_range_proof(tampered, c, bits=4)

    def test_bits_from_another_value(self, setup):
        _, c = setup
        other = generate_range_proof(6, random_scalar(), bits=4)
        assert not verify_range_proof(other, c, bits=4)


class TestRangeProofSerialization:

    def test_felts_roundtrip(self):
        r = random_scalar()
        proof = generate_range_proof(9, r, bits=4)
        felts = proof.to_felts()
        assert len(felts) == 2 + 4 * 10
        assert felts[0] == hex(4)
        parsed = RangeProof.from_felts(felts)
        assert parsed == proof
        assert verify_range_proof(parsed, commit(9, r), bits=4)

    def test_truncated(self):
        felts = generate_range_proof(9, random_scalar(), bits=4).to_felts()
        with pytest.raises(MalformedSerializationError):
            RangeProof.from_felts(felts[:-1])

    def test_empty(self):
        with pytest.raises(MalformedSerializationError):
            RangeProof.from_felts([])


# ==============================================================================
# Balance Proof tests
# ==============================================================================


class TestBalanceProof:

    def test_roundtrip(self):
        r_old = random_scalar()
        proof = generate_balance_proof(1000, 300, r_old, bits=16)
        assert isinstance(proof, BalanceProof)
        assert verify_balance_proof(proof, commit(1000, r_old), 300, bits=16)

    def test_new_commitment_hides_difference(self):
        r_old, r_new = random_scalar(), random_scalar()
        proof = generate_balance_proof(1000, 300, r_old, new_blinding=r_new, bits=16)
        assert proof.new_balance_commitment == commit(700, r_new)

    def test_spend_everything(self):
        r_old = random_scalar()
        proof = generate_balance_proof(50, 50, r_old, bits=8)
        assert verify_balance_proof(proof, commit(50, r_old), 50, bits=8)

    def test_insufficient_balance(self):
        with pytest.raises(InsufficientBalanceError):
            generate_balance_proof(100, 101, random_scalar(), bits=8)

    def test_insufficient_balance_is_out_of_range(self):
        with pytest.raises(OutOfRangeError):
            generate_balance_proof(100, 101, random_scalar(), bits=8)

    def test_negative_amount(self):
        with pytest.raises(OutOfRangeError):
            generate_balance_proof(100, -1, random_scalar(), bits=8)

    def test_wrong_old_commitment(self):
        r_old = random_scalar()
        proof = generate_balance_proof(1000, 300, r_old, bits=16)
        assert not verify_balance_proof(proof, commit(999, r_old), 300, bits=16)

    def test_new_balance_exceeds_width(self):
        with pytest.raises(OutOfRangeError):
            generate_balance_proof(1000, 1, random_scalar(), bits=8)

    def test_amount_is_bound(self):
        r_old = random_scalar()
        proof = generate_balance_proof(1000, 300, r_old, bits=16)
        assert not verify_balance_proof(proof, commit(1000, r_old), 299, bits=16)
        assert not verify_balance_proof(proof, commit(1000, r_old), 0, bits=16)

    def test_negative_or_wide_amount_rejected(self):
        r_old = random_scalar()
        proof = generate_balance_proof(1000, 300, r_old, bits=16)
        assert not verify_balance_proof(proof, commit(1000, r_old), -300, bits=16)
        assert not verify_balance_proof(proof, commit(1000, r_old), CURVE_ORDER - 300, bits=16)

    def test_amount_wider_than_bits(self):
        with pytest.raises(OutOfRangeError):
            generate_balance_proof(1000, 256, random_scalar(), bits=8)

    def test_inflation_forgery_rejected(self):
        # New balance 1_000_000 from an old balance of 100: the residue
        # C_old - C_new - amount·G keeps a G component for any amount in range.
        r_old, r_new = random_scalar(), random_scalar()
        old_commitment = commit(100, r_old)
        new_commitment = commit(1_000_000, r_new)
        delta_r = (r_old - r_new) % CURVE_ORDER
        forged = BalanceProof(
            new_balance_commitment=new_commitment,
            range_proof=generate_range_proof(1_000_000, r_new, bits=32),
            consistency_proof=generate_blinding_proof(delta_r, scalar_mult(delta_r, H)),
        )
        for amount in (0, 100, (100 - 1_000_000) % CURVE_ORDER):
            assert not verify_balance_proof(forged, old_commitment, amount, bits=32)

    def test_residue_is_blinding_delta(self):
        r_old, r_new = random_scalar(), random_scalar()
        residue = balance_residue(commit(1000, r_old), commit(700, r_new), scalar_mult(300, G))
        assert residue == scalar_mult(r_old - r_new, H)

    def test_invalid_width(self):
        r_old = random_scalar()
        proof = generate_balance_proof(10, 3, r_old, bits=8)
        assert not verify_balance_proof(proof, commit(10, r_old), 3, bits=0)
