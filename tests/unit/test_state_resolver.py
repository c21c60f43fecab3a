"""
Transfer state derivation tests.

State is never stored: it follows from which stage records are visible.
"""

from bridge_explorer.models import (
    CrossChainTransfer,
    DestinationRecord,
    RelayRecord,
    SourceRecord,
    TransferState,
)
from bridge_explorer.transfers.state import resolve_state


def _source():
    return SourceRecord(hash="src1", chain_id=2, height=100, time=1000)


class TestResolveState:
    """Tests for resolve_state."""

    def test_source_only_is_pending(self):
        """A deposit with no relay yet is pending."""
        transfer = CrossChainTransfer(source=_source())

        assert resolve_state(transfer) == TransferState.PENDING
        assert transfer.relay_hash == ""
        assert transfer.destination_hash == ""

    def test_relayed_without_destination_is_pending(self):
        """Relay confirmation alone does not complete a transfer."""
        transfer = CrossChainTransfer(
            source=_source(),
            relay=RelayRecord(hash="poly1", src_hash="src1", chain_id=0, height=10, time=1100),
        )

        assert resolve_state(transfer) == TransferState.PENDING
        assert transfer.relay_hash == "poly1"

    def test_destination_present_is_completed(self):
        """A released transfer is completed."""
        transfer = CrossChainTransfer(
            source=_source(),
            relay=RelayRecord(hash="poly1", src_hash="src1", chain_id=0, height=10, time=1100),
            destination=DestinationRecord(hash="dst1", poly_hash="poly1", chain_id=6, height=200, time=1200),
        )

        assert resolve_state(transfer) == TransferState.COMPLETED
        assert transfer.destination_hash == "dst1"

    def test_state_values_serialize_as_strings(self):
        assert TransferState.PENDING.value == "pending"
        assert TransferState.COMPLETED.value == "completed"
