"""Bridge-wide statistics."""

from bridge_explorer.statistics.aggregator import ExplorerInfo, ListedAsset, StatisticsAggregator, TransferStatistics

__all__ = ["ExplorerInfo", "ListedAsset", "StatisticsAggregator", "TransferStatistics"]
