from .correlation import correlation_with_grad

__all__ = ["correlation_with_grad"]
