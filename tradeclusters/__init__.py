"""Trade ingestion and price-cluster engine.

Backfills executed trades from exchange REST APIs into a deduplicating
store and ranks price buckets by traded volume.
"""

__version__ = "0.1.0"
