# ABOUTME: Contract tests for the write pipeline's retry classes and the public exception taxonomy.
# ABOUTME: Checks escalation bounds and that every classified outcome maps to one typed error.

import pytest

import proof_of_life.exceptions as public
from proof_of_life.chain.classify import TxOutcome, classify_error, to_chain_error
from proof_of_life.chain.exceptions import ChainError, LedgerError
from proof_of_life.chain.pipeline import RETRIABLE, RetryPolicy
from proof_of_life.chain.transport import ResourceBudget
from proof_of_life.config.settings import Settings

SAMPLES = {
    TxOutcome.CONGESTION: "TRY_AGAIN_LATER",
    TxOutcome.RESOURCE_LIMIT: "transaction failed: ResourceLimitExceeded",
    TxOutcome.AUTH_GLITCH: "txBadAuth",
    TxOutcome.PROOF_REJECTED: "HostError: Error(Contract, #22)",
    TxOutcome.DESYNC: "HostError: Error(Contract, #19)",
    TxOutcome.FATAL: "HostError: Error(Contract, #2)",
}


class TestEscalationContract:
    """Contract: resource escalation is monotonic and bounded"""

    def test_default_factors_strictly_increase(self):
        """Test the configured factors from settings"""
        factors = Settings(_env_file=None).resource_bump_factor_list
        assert factors[0] > 1
        assert all(a < b for a, b in zip(factors, factors[1:]))

    @pytest.mark.parametrize("failures", range(10))
    def test_escalated_budget_within_ceilings(self, failures):
        """Test that no escalation exceeds the write-byte and fee ceilings"""
        policy = RetryPolicy()
        base = ResourceBudget(instructions=10_000_000, read_bytes=50_000, write_bytes=60_000, resource_fee=30_000_000)
        budget = base.escalate(
            policy.escalation_factor(failures), policy.fee_floor, policy.max_write_bytes, policy.max_resource_fee,
        )
        assert budget.write_bytes <= policy.max_write_bytes
        assert budget.resource_fee <= policy.max_resource_fee
        assert budget.instructions > base.instructions
        assert budget.resource_fee >= min(base.resource_fee * policy.fee_floor, policy.max_resource_fee)


class TestTaxonomyContract:
    """Contract: classified outcomes and exported exceptions"""

    @pytest.mark.parametrize("outcome,text", SAMPLES.items())
    def test_outcome_maps_to_chain_error(self, outcome, text):
        """Test that each sample classifies as expected and wraps to a ChainError"""
        assert classify_error(text) == outcome
        err = to_chain_error(LedgerError(text))
        assert isinstance(err, ChainError)
        assert (outcome in (TxOutcome.CONGESTION, TxOutcome.RESOURCE_LIMIT, TxOutcome.AUTH_GLITCH)) == isinstance(
            err, RETRIABLE
        )

    def test_distinct_classes_per_outcome(self):
        """Test that no two outcomes share an exception class"""
        classes = {type(to_chain_error(LedgerError(text))) for text in SAMPLES.values()}
        assert len(classes) == len(SAMPLES)

    def test_public_exports(self):
        """Test that the top-level exceptions module re-exports every error type"""
        for name in public.__all__:
            assert issubclass(getattr(public, name), Exception)
        assert public.ChainError is ChainError
        assert issubclass(public.StateDesync, public.ChainError)
        assert issubclass(public.ProverRequestFailed, Exception)
