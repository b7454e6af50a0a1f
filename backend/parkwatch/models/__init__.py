from parkwatch.models.alert_rule import AlertRule
from parkwatch.models.attraction import Attraction
from parkwatch.models.attraction_current_state import AttractionCurrentState
from parkwatch.models.attraction_status import AttractionStatus
from parkwatch.models.event_queue import QueuedEvent
from parkwatch.models.favorite import Favorite
from parkwatch.models.notification_log import NotificationLog
from parkwatch.models.notified_event import NotifiedEvent
from parkwatch.models.park import Park
from parkwatch.models.push_subscription import PushSubscription
from parkwatch.models.pushover_profile import PushoverProfile

__all__ = [
    "AlertRule",
    "Attraction",
    "AttractionCurrentState",
    "AttractionStatus",
    "Favorite",
    "NotificationLog",
    "NotifiedEvent",
    "Park",
    "PushSubscription",
    "PushoverProfile",
    "QueuedEvent",
]
