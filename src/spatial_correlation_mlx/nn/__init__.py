from .correlation import SpatialCorrelationSampler

__all__ = ["SpatialCorrelationSampler"]
