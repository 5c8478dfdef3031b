# ABOUTME: Unit tests for failed-write classification.
# ABOUTME: Validates contract code extraction and the outcome table for known ledger error texts.

import pytest

from proof_of_life.chain.classify import (
    ContractCode,
    TxOutcome,
    classify_error,
    contract_code,
    has_contract_code,
    is_desync_error,
    is_oversized_batch,
    is_session_key_error,
    to_chain_error,
)
from proof_of_life.chain.exceptions import (
    AuthorizationFailure,
    FatalChainError,
    LedgerError,
    NetworkCongestion,
    ProofRejected,
    StateDesync,
)


class TestContractCode:
    """Test suite for contract code extraction"""

    def test_host_error_format(self):
        """Test the HostError(Contract, #n) format"""
        assert contract_code("HostError: Error(Contract, #19)") == 19

    def test_unrelated_hash_numbers_ignored(self):
        """Test that #n outside the Error(Contract, #n) shape is not read as a contract code"""
        assert contract_code("failed with #7 NotEvaderTurn") is None
        assert contract_code("HostError: Error(WasmVm, InvalidAction) at frame #22") is None
        assert classify_error("op #20 failed: socket hang up") == TxOutcome.FATAL

    def test_no_code(self):
        """Test text without a code"""
        assert contract_code("socket hang up") is None

    def test_typed_error_code_wins(self):
        """Test that a typed error's explicit code is used"""
        assert contract_code(FatalChainError("whatever #3", contract_code=12)) == 12

    def test_helpers(self):
        """Test code predicates"""
        assert has_contract_code("Error(Contract, #7)", ContractCode.NOT_EVADER_TURN)
        assert is_desync_error("Error(Contract, #20)")
        assert not is_desync_error("Error(Contract, #22)")
        assert is_session_key_error("Error(Contract, #30)")


class TestClassifyError:
    """Test suite for classify_error"""

    @pytest.mark.parametrize("text,outcome", [
        ("TRY_AGAIN_LATER", TxOutcome.CONGESTION),
        ("txBadSeq", TxOutcome.CONGESTION),
        ("HostError: Error(Contract, #1)", TxOutcome.CONGESTION),
        ("transaction failed: ResourceLimitExceeded", TxOutcome.RESOURCE_LIMIT),
        ("tx_insufficient_fee", TxOutcome.RESOURCE_LIMIT),
        ("txBadAuth", TxOutcome.AUTH_GLITCH),
        ("HostError: Error(Contract, #29)", TxOutcome.AUTH_GLITCH),
        ("HostError: Error(Contract, #22)", TxOutcome.PROOF_REJECTED),
        ("verifier: pi_len mismatch", TxOutcome.PROOF_REJECTED),
        ("HostError: Error(Contract, #6)", TxOutcome.DESYNC),
        ("HostError: Error(Contract, #18)", TxOutcome.DESYNC),
        ("HostError: Error(Contract, #2)", TxOutcome.FATAL),
        ("something unexpected", TxOutcome.FATAL),
    ])
    def test_outcomes(self, text, outcome):
        """Test the outcome for known error texts"""
        assert classify_error(text) == outcome

    def test_oversized_batch(self):
        """Test detection of a batch that blew the simulation budget"""
        assert is_oversized_batch("simulation failed: HostError: Error(Budget, ExceededLimit)")
        assert is_oversized_batch("txMalformed")
        assert not is_oversized_batch("TRY_AGAIN_LATER")


class TestToChainError:
    """Test suite for to_chain_error"""

    @pytest.mark.parametrize("text,cls", [
        ("TRY_AGAIN_LATER", NetworkCongestion),
        ("txBadAuth", AuthorizationFailure),
        ("Error(Contract, #22)", ProofRejected),
        ("Error(Contract, #19)", StateDesync),
        ("Error(Contract, #3)", FatalChainError),
    ])
    def test_maps_to_class(self, text, cls):
        """Test that raw ledger errors become typed errors with their code and hash"""
        typed = to_chain_error(LedgerError(text, tx_hash="TX_1"))
        assert isinstance(typed, cls)
        assert typed.tx_hash == "TX_1"
        assert typed.message == text

    def test_keeps_typed_error(self):
        """Test that an error of the right class is returned unchanged"""
        err = StateDesync("Error(Contract, #19)")
        assert to_chain_error(err) is err

    def test_success_has_no_exception(self):
        """Test the success outcome is refused"""
        with pytest.raises(ValueError):
            to_chain_error(LedgerError("ok"), TxOutcome.SUCCESS)
