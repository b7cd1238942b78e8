"""Analytics over stored trades."""

from .clusters import ClusterAggregator, PriceBucket, round_half_away

__all__ = ["ClusterAggregator", "PriceBucket", "round_half_away"]
