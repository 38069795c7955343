"""
Unit tests for holder enumeration and classification.

Tests follow the Given/When/Then pattern for clarity.
"""

import json
from decimal import Decimal
from unittest.mock import MagicMock
from urllib.parse import parse_qsl, urlparse

import pytest
import responses

from bscscope.lib.errors import FetchError, TokenNotFound, ValidationError
from bscscope.lib.explorer_client import DEFAULT_EXPLORER_URL, ExplorerClient
from bscscope.lib.holders import (
    CONTRACT_LABEL,
    EOA_LABEL,
    HOLDER_COUNT_LIMIT,
    STRATEGY_TRANSFER_LOG,
    UNCOUNTABLE,
    HolderClassifier,
    chunk_list,
    count_holders,
    rank_holders,
    replay_transfers,
)
from bscscope.lib.models import Holder, HolderBalance, TransferEvent, TransferLog
from bscscope.lib.rpc_client import RpcClient

ADDR_A = "0x" + "a" * 40
ADDR_B = "0x" + "b" * 40
ADDR_C = "0x" + "c" * 40
ROUTER = "0x10ED43C718714eb63d5aA57B78B54704E256024E"

E18 = 10**18


def _mock_explorer(token_info, holders=(), events=(), complete=True):
    explorer = MagicMock(spec=ExplorerClient)
    explorer.get_token_info.return_value = token_info
    explorer.get_top_holders.return_value = list(holders)
    explorer.get_transfer_log.return_value = TransferLog(list(events), complete=complete)
    return explorer


def _mock_rpc(contracts=()):
    rpc = MagicMock(spec=RpcClient)
    rpc.is_contract.side_effect = lambda address: address in contracts
    return rpc


class TestReplayTransfers:
    """Tests for replay_transfers."""

    def test_debits_sender_and_credits_receiver(self):
        """
        Given transfers A->B of 100 and B->C of 40
        When replaying them
        Then A ends at -100, B at 60 and C at 40 in first-seen order
        """
        # Given
        events = [
            TransferEvent(ADDR_A, ADDR_B, 100),
            TransferEvent(ADDR_B, ADDR_C, 40),
        ]

        # When
        balances = replay_transfers(events)

        # Then
        assert balances == {ADDR_A: -100, ADDR_B: 60, ADDR_C: 40}
        assert list(balances) == [ADDR_A, ADDR_B, ADDR_C]

    def test_replays_in_given_order(self):
        events = [
            TransferEvent(ADDR_A, ADDR_B, 10),
            TransferEvent(ADDR_B, ADDR_C, 10),
        ]

        assert replay_transfers(events) == {ADDR_A: -10, ADDR_B: 0, ADDR_C: 10}


class TestRankHolders:
    """Tests for rank_holders."""

    def test_drops_non_positive_and_sorts_descending(self):
        # Given
        balances = {ADDR_A: -100 * E18, ADDR_B: 60 * E18, ADDR_C: 40 * E18}

        # When
        holders = rank_holders(balances, decimals=18, limit=10, total_supply=100 * E18)

        # Then
        assert [h.owner for h in holders] == [ADDR_B, ADDR_C]
        assert holders[0].balance == Decimal(60)
        assert holders[0].percentage == Decimal(60)
        assert holders[0].classification is None

    def test_respects_limit_and_keeps_ties_stable(self):
        balances = {ADDR_A: 5, ADDR_B: 7, ADDR_C: 5}

        holders = rank_holders(balances, decimals=0, limit=2)

        assert [h.owner for h in holders] == [ADDR_B, ADDR_A]
        assert holders[0].percentage is None


class TestCountHolders:
    """Tests for count_holders."""

    def test_counts_owners(self):
        assert count_holders({ADDR_A, ADDR_B}) == 2

    def test_returns_sentinel_above_limit(self):
        owners = {f"0x{i:040x}" for i in range(HOLDER_COUNT_LIMIT + 1)}

        assert count_holders(owners) == UNCOUNTABLE

    def test_limit_itself_is_countable(self):
        owners = {f"0x{i:040x}" for i in range(HOLDER_COUNT_LIMIT)}

        assert count_holders(owners) == HOLDER_COUNT_LIMIT


class TestChunkList:
    def test_splits_into_chunks(self):
        assert chunk_list([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]

    def test_rejects_zero_size(self):
        with pytest.raises(ValueError):
            chunk_list([1], 0)


class TestClassification:
    """Tests for holder classification."""

    def test_known_label_wins_over_code_check(self, sample_token_info):
        """
        Given a holder present in the known-address table
        When classifying it
        Then the known label should be used without an RPC call
        """
        # Given
        rpc = _mock_rpc(contracts={ROUTER})
        classifier = HolderClassifier(_mock_explorer(sample_token_info), rpc)

        # When
        label = classifier.classify_address(ROUTER)

        # Then
        assert label == "PancakeSwap: Router v2"
        rpc.is_contract.assert_not_called()

    def test_contract_and_eoa_by_deployed_code(self, sample_token_info):
        classifier = HolderClassifier(_mock_explorer(sample_token_info), _mock_rpc({ADDR_B}))

        assert classifier.classify_address(ADDR_B) == CONTRACT_LABEL
        assert classifier.classify_address(ADDR_C) == EOA_LABEL

    def test_failed_lookup_leaves_classification_empty(self, sample_token_info):
        rpc = MagicMock(spec=RpcClient)
        rpc.is_contract.side_effect = FetchError("RPC error: boom")
        classifier = HolderClassifier(_mock_explorer(sample_token_info), rpc)

        assert classifier.classify_address(ADDR_B) is None

    def test_classify_preserves_order_across_chunks(self, sample_token_info):
        """
        Given five holders and a chunk size of two
        When classifying them
        Then every holder should be classified and the order preserved
        """
        # Given
        holders = [Holder(owner=f"0x{i:040x}", balance=Decimal(10 - i)) for i in range(1, 6)]
        contracts = {holders[1].owner, holders[4].owner}
        classifier = HolderClassifier(
            _mock_explorer(sample_token_info), _mock_rpc(contracts), chunk_size=2
        )

        # When
        classified = classifier.classify(holders)

        # Then
        assert [h.owner for h in classified] == [h.owner for h in holders]
        assert [h.classification for h in classified] == [
            EOA_LABEL,
            CONTRACT_LABEL,
            EOA_LABEL,
            EOA_LABEL,
            CONTRACT_LABEL,
        ]
        assert holders[0].classification is None

    def test_rejects_unknown_strategy(self, sample_token_info):
        with pytest.raises(ValueError, match="Unsupported holder strategy"):
            HolderClassifier(_mock_explorer(sample_token_info), _mock_rpc(), strategy="magic")


class TestGetHoldersClassification:
    """Tests for get_holders_classification."""

    def test_transfer_log_strategy_ranks_replayed_balances(
        self, sample_token_info, sample_token_address
    ):
        """
        Given a transfer log A->B 100 and B->C 40 for an 18-decimal token
        When computing holder stats from the transfer log
        Then B ranks before C, A is excluded and all three owners are counted
        """
        # Given
        events = [
            TransferEvent(ADDR_A, ADDR_B, 100),
            TransferEvent(ADDR_B, ADDR_C, 40),
        ]
        classifier = HolderClassifier(
            _mock_explorer(sample_token_info, events=events),
            _mock_rpc(),
            strategy=STRATEGY_TRANSFER_LOG,
        )

        # When
        stats = classifier.get_holders_classification(sample_token_address, limit=10)

        # Then
        assert [h.owner for h in stats.top_holders] == [ADDR_B, ADDR_C]
        assert [h.balance for h in stats.top_holders] == [Decimal("60E-18"), Decimal("40E-18")]
        assert stats.total_holders == 3
        assert stats.total_supply == Decimal(1000)
        assert all(h.classification == EOA_LABEL for h in stats.top_holders)

    def test_top_holders_strategy_respects_limit(self, sample_token_info, sample_token_address):
        # Given
        candidates = [
            HolderBalance(ADDR_C, 40 * E18),
            HolderBalance(ADDR_B, 60 * E18),
            HolderBalance(ADDR_A, 10 * E18),
        ]
        events = [TransferEvent(ADDR_A, ADDR_B, 1), TransferEvent(ADDR_B, ADDR_C, 1)]
        explorer = _mock_explorer(sample_token_info, holders=candidates, events=events)
        classifier = HolderClassifier(explorer, _mock_rpc({ADDR_B}), candidate_pool=100)

        # When
        stats = classifier.get_holders_classification(sample_token_address, limit=2)

        # Then
        assert len(stats.top_holders) == 2
        balances = [h.balance for h in stats.top_holders]
        assert balances == sorted(balances, reverse=True)
        assert stats.top_holders[0].classification == CONTRACT_LABEL
        assert stats.total_holders == 3
        explorer.get_top_holders.assert_called_once_with(sample_token_address, 100)

    def test_reports_sentinel_for_huge_owner_sets(self, sample_token_info, sample_token_address):
        events = [
            TransferEvent(ADDR_A, f"0x{i:040x}", 1) for i in range(1, HOLDER_COUNT_LIMIT + 2)
        ]
        classifier = HolderClassifier(
            _mock_explorer(sample_token_info, holders=[HolderBalance(ADDR_B, 5)], events=events),
            _mock_rpc(),
        )

        stats = classifier.get_holders_classification(sample_token_address, limit=1)

        assert stats.total_holders == UNCOUNTABLE

    def test_truncated_log_reports_sentinel(self, sample_token_info, sample_token_address):
        """
        Given a transfer log that could not be read to the end
        When computing holder stats with the top_holders strategy
        Then holders should still be returned and the count reported as UNCOUNTABLE
        """
        # Given
        events = [TransferEvent(ADDR_A, ADDR_B, 1), TransferEvent(ADDR_B, ADDR_C, 1)]
        explorer = _mock_explorer(
            sample_token_info,
            holders=[HolderBalance(ADDR_B, 60 * E18), HolderBalance(ADDR_C, 40 * E18)],
            events=events,
            complete=False,
        )
        classifier = HolderClassifier(explorer, _mock_rpc())

        # When
        stats = classifier.get_holders_classification(sample_token_address, limit=2)

        # Then
        assert stats.total_holders == UNCOUNTABLE
        assert [h.owner for h in stats.top_holders] == [ADDR_B, ADDR_C]

    def test_transfer_log_strategy_refuses_truncated_log(
        self, sample_token_info, sample_token_address
    ):
        events = [TransferEvent(ADDR_A, ADDR_B, 100)]
        classifier = HolderClassifier(
            _mock_explorer(sample_token_info, events=events, complete=False),
            _mock_rpc(),
            strategy=STRATEGY_TRANSFER_LOG,
        )

        with pytest.raises(FetchError, match="too long to replay"):
            classifier.get_holders_classification(sample_token_address)

    @responses.activate
    def test_result_window_error_does_not_fail_classification(self, sample_token_address):
        """
        Given an explorer that serves two pages of transfers and then answers
        with a result-window error
        When computing holder stats through a real explorer client
        Then the operation should succeed with the count reported as UNCOUNTABLE
        """
        # Given
        def explorer_api(request):
            params = dict(parse_qsl(urlparse(request.url).query))
            action = params["action"]
            if action == "tokeninfo":
                result = [
                    {
                        "contractAddress": sample_token_address,
                        "tokenName": "PancakeSwap Token",
                        "symbol": "CAKE",
                        "divisor": "18",
                        "totalSupply": str(1000 * E18),
                    }
                ]
                return 200, {}, json.dumps({"status": "1", "message": "OK", "result": result})
            if action == "tokenholderlist":
                result = [{"TokenHolderAddress": ADDR_B, "TokenHolderQuantity": str(60 * E18)}]
                return 200, {}, json.dumps({"status": "1", "message": "OK", "result": result})
            if int(params["page"]) * int(params["offset"]) > 4:
                body = {
                    "status": "0",
                    "message": "NOTOK",
                    "result": "Result window is too large, PageNo x Offset size must be "
                    "less than or equal to 10000",
                }
                return 200, {}, json.dumps(body)
            page = [{"from": ADDR_A, "to": ADDR_B, "value": "1"}] * 2
            return 200, {}, json.dumps({"status": "1", "message": "OK", "result": page})

        responses.add_callback(responses.GET, DEFAULT_EXPLORER_URL, callback=explorer_api)
        classifier = HolderClassifier(ExplorerClient("test-key"), _mock_rpc(), page_size=2)

        # When
        stats = classifier.get_holders_classification(sample_token_address, limit=1)

        # Then
        assert stats.total_holders == UNCOUNTABLE
        assert [h.owner for h in stats.top_holders] == [ADDR_B]
        assert stats.top_holders[0].balance == Decimal(60)

    def test_unknown_token_raises_token_not_found(self, sample_token_address):
        explorer = MagicMock(spec=ExplorerClient)
        explorer.get_token_info.side_effect = TokenNotFound(f"Token not found: {sample_token_address}")
        explorer.get_top_holders.return_value = []
        explorer.get_transfer_log.return_value = TransferLog([])
        classifier = HolderClassifier(explorer, _mock_rpc())

        with pytest.raises(TokenNotFound):
            classifier.get_holders_classification(sample_token_address)

    def test_invalid_address_makes_no_requests(self, sample_token_info):
        explorer = _mock_explorer(sample_token_info)
        rpc = _mock_rpc()
        classifier = HolderClassifier(explorer, rpc)

        with pytest.raises(ValidationError):
            classifier.get_holders_classification("0x123")

        explorer.get_token_info.assert_not_called()
        explorer.get_top_holders.assert_not_called()
        rpc.is_contract.assert_not_called()
