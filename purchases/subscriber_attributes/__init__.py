from purchases.subscriber_attributes.cache import SubscriberAttributesCache
from purchases.subscriber_attributes.models import SubscriberAttribute

__all__ = ["SubscriberAttribute", "SubscriberAttributesCache"]
