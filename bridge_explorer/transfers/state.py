"""Lifecycle state of a cross-chain transfer."""

from bridge_explorer.models import CrossChainTransfer, TransferState


def resolve_state(transfer: CrossChainTransfer) -> TransferState:
    """
    Derive state from which stages are visible.

    Nothing is stored: a transfer is completed once its destination
    release has been ingested, pending until then. A visible relay
    without a destination is still pending.
    """
    if transfer.destination is not None:
        return TransferState.COMPLETED
    return TransferState.PENDING
