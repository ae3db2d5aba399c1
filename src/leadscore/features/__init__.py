"""Feature vector exports."""

from .vector import FEATURE_NAMES, FeatureAligner, build_feature_vector

__all__ = ["FEATURE_NAMES", "FeatureAligner", "build_feature_vector"]
