"""
Order Sharding

Partitions canonical views by a hash of order_id. Every order and all of its
lines land in the same shard; dimension tables are shared by all shards.
"""

from typing import List

import polars as pl

from sales_analytics.canonical.builder import CanonicalViews

HASH_SEED = 0
SHARD_COLUMN = "_shard"


def split_orders(views: CanonicalViews, shard_count: int) -> List[CanonicalViews]:
    """
    Split views into disjoint order shards.

    Args:
        views: Canonical views of the snapshot
        shard_count: Number of shards (1 returns the views unchanged)
    """
    if shard_count < 1:
        raise ValueError(f"shard_count must be at least 1, got {shard_count}")
    if shard_count == 1:
        return [views]

    tagged = views.orders.with_columns(
        (pl.col("order_id").hash(seed=HASH_SEED) % shard_count).alias(SHARD_COLUMN)
    )
    return [
        views.with_orders(tagged.filter(pl.col(SHARD_COLUMN) == index).drop(SHARD_COLUMN))
        for index in range(shard_count)
    ]
