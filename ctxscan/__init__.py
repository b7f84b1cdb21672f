"""ctxscan: workspace analysis and documentation shard generation."""

__version__ = "0.4.0"
