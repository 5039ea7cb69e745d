"""Feature extraction and momentum scoring."""

from .feature_builder import (
    FeatureBuilder,
    MomentumBreakdown,
    TitleFeatures,
    calculate_acceleration,
    calculate_momentum_with_breakdown,
)

__all__ = [
    "FeatureBuilder",
    "MomentumBreakdown",
    "TitleFeatures",
    "calculate_acceleration",
    "calculate_momentum_with_breakdown",
]
