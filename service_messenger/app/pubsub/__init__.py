"""
Pub/sub package for the Messenger.

Each side owns one dedicated store connection; neither is pooled, since a
subscribed connection cannot issue other commands.
"""

from .messages import is_self_authored, tag_message
from .publisher import Publisher
from .subscriber import SubscriberLoop, SubscriberState

__all__ = ["Publisher", "SubscriberLoop", "SubscriberState", "is_self_authored", "tag_message"]
