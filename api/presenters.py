"""
JSON shapes for API responses.

Amounts are rendered as plain integer strings so 38-digit values survive
JavaScript clients. Chain names and token metadata come from the
reference snapshot; unknown ids render with empty names.
"""

from decimal import Decimal
from typing import Any, Optional

from bridge_explorer.models import (
    ActivityRecord,
    AssetStatistic,
    Chain,
    ChainStatistic,
    CrossChainTransfer,
    Token,
    TokenStatistic,
)
from bridge_explorer.statistics.aggregator import ExplorerInfo, TransferStatistics
from bridge_explorer.storage.reference_data import ReferenceData
from bridge_explorer.transfers.state import resolve_state


def amount_str(value: Optional[Decimal]) -> str:
    if value is None:
        return "0"
    return format(Decimal(value), "f")


def present_token(reference: ReferenceData, chain_id: int, token_hash: str) -> dict:
    token = reference.token(chain_id, token_hash)
    basic = reference.token_basic_for(token)
    return {
        "hash": token_hash,
        "chainId": chain_id,
        "name": token.name if token else "",
        "type": token.token_type if token else "",
        "tokenBasicName": token.token_basic_name if token else "",
        "precision": basic.precision if basic else (token.precision if token else 0),
    }


def present_transfer(transfer: CrossChainTransfer, reference: ReferenceData) -> dict:
    """Composite view of one cross-chain transfer."""
    source = transfer.source
    result: dict[str, Any] = {
        "state": resolve_state(transfer).value,
        "sourceHash": transfer.source_hash,
        "relayHash": transfer.relay_hash,
        "destinationHash": transfer.destination_hash,
        "source": {
            "hash": source.hash,
            "chainId": source.chain_id,
            "chainName": reference.chain_name(source.chain_id),
            "height": source.height,
            "time": source.time,
            "transfer": None,
        },
        "relay": None,
        "destination": None,
    }

    st = transfer.source_transfer
    if st is not None:
        result["source"]["transfer"] = {
            "from": st.from_address,
            "to": st.to_address,
            "amount": amount_str(st.amount),
            "asset": present_token(reference, st.chain_id, st.asset),
            "dstChainId": st.dst_chain_id,
            "dstChainName": reference.chain_name(st.dst_chain_id),
            "dstAsset": present_token(reference, st.dst_chain_id, st.dst_asset),
        }

    relay = transfer.relay
    if relay is not None:
        result["relay"] = {
            "hash": relay.hash,
            "chainId": relay.chain_id,
            "chainName": reference.chain_name(relay.chain_id),
            "height": relay.height,
            "time": relay.time,
        }

    destination = transfer.destination
    if destination is not None:
        dt = transfer.destination_transfer
        result["destination"] = {
            "hash": destination.hash,
            "chainId": destination.chain_id,
            "chainName": reference.chain_name(destination.chain_id),
            "height": destination.height,
            "time": destination.time,
            "transfer": None if dt is None else {
                "from": dt.from_address,
                "to": dt.to_address,
                "amount": amount_str(dt.amount),
                "asset": present_token(reference, dt.chain_id, dt.asset),
            },
        }

    return result


def present_activity(record: ActivityRecord, reference: ReferenceData) -> dict:
    token = present_token(reference, record.chain_id, record.token_hash)
    # Address activity carries token columns from the store; prefer them when set.
    if record.token_name:
        token["name"] = record.token_name
    if record.token_type:
        token["type"] = record.token_type
    if record.precision:
        token["precision"] = record.precision

    return {
        "hash": record.hash,
        "chainId": record.chain_id,
        "chainName": reference.chain_name(record.chain_id),
        "height": record.height,
        "time": record.time,
        "from": record.from_address,
        "to": record.to_address,
        "amount": amount_str(record.amount),
        "direction": int(record.direction),
        "token": token,
    }


def present_chain(chain: Chain) -> dict:
    return {"chainId": chain.chain_id, "name": chain.name, "height": chain.height}


def present_chain_statistic(stat: ChainStatistic, reference: ReferenceData) -> dict:
    return {
        "chainId": stat.chain_id,
        "chainName": reference.chain_name(stat.chain_id),
        "addresses": stat.addresses,
        "in": stat.in_counter,
        "out": stat.out_counter,
    }


def present_token_statistic(stat: TokenStatistic, reference: ReferenceData) -> dict:
    return {
        "chainId": stat.chain_id,
        "chainName": reference.chain_name(stat.chain_id),
        "token": present_token(reference, stat.chain_id, stat.hash),
        "inCounter": stat.in_counter,
        "inAmount": amount_str(stat.in_amount),
        "inAmountUsd": amount_str(stat.in_amount_usd),
        "outCounter": stat.out_counter,
        "outAmount": amount_str(stat.out_amount),
        "outAmountUsd": amount_str(stat.out_amount_usd),
    }


def present_transfer_statistics(stats: TransferStatistics, reference: ReferenceData) -> dict:
    return {
        "tokenStatistics": [present_token_statistic(s, reference) for s in stats.token_statistics],
        "chainStatistics": [present_chain_statistic(s, reference) for s in stats.chain_statistics],
        "chains": [present_chain(chain) for chain in stats.chains],
    }


def present_asset_statistic(stat: AssetStatistic) -> dict:
    return {
        "name": stat.name,
        "addresses": stat.addresses,
        "txnum": stat.txnum,
        "amount": amount_str(stat.amount),
        "amountUsd": amount_str(stat.amount_usd),
        "amountBtc": amount_str(stat.amount_btc),
        "latestUpdate": stat.latest_update,
    }


def _present_listed_token(token: Token, reference: ReferenceData) -> dict:
    return {
        "hash": token.hash,
        "chainId": token.chain_id,
        "chainName": reference.chain_name(token.chain_id),
        "name": token.name,
        "type": token.token_type,
        "precision": token.precision,
    }


def present_explorer_info(info: ExplorerInfo, reference: ReferenceData) -> dict:
    return {
        "chains": [present_chain(chain) for chain in info.chains],
        "chainStatistics": [present_chain_statistic(s, reference) for s in info.chain_statistics],
        "tokens": [
            {
                "name": asset.basic.name,
                "precision": asset.basic.precision,
                "price": amount_str(asset.basic.price),
                "tokens": [_present_listed_token(token, reference) for token in asset.tokens],
            }
            for asset in info.assets
        ],
    }
