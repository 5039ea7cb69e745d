"""Market question probability distribution and edge pricing."""

from .distributor import MarketProbabilityDistributor, softmax_percentages
from .edge import calculate_edge, find_edges, model_probability, momentum_to_probability, significant_edges

__all__ = [
    "MarketProbabilityDistributor",
    "softmax_percentages",
    "calculate_edge",
    "find_edges",
    "model_probability",
    "momentum_to_probability",
    "significant_edges",
]
