"""Feed Aggregator - deduplicated Twitter, Reddit and GitHub feed."""

__version__ = "0.1.0"
