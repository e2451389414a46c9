"""Social channel adapters."""

from .base import SocialChannel
from .twitter import TwitterChannel

__all__ = ["SocialChannel", "TwitterChannel"]
