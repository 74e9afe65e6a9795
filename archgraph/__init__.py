"""archgraph - architecture graph builder and query engine."""

__version__ = "0.4.0"
