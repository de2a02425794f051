from .user import User
from .checkin import CheckIn
from .journal import JournalEntry
from .recognition import Recognition
from .reward import Reward, Redemption
from .achievement import Achievement, UserAchievement
from .coin_mutation import CoinMutation
from .notification import Notification, NotificationDelivery

__all__ = [
    "User",
    "CheckIn",
    "JournalEntry",
    "Recognition",
    "Reward",
    "Redemption",
    "Achievement",
    "UserAchievement",
    "CoinMutation",
    "Notification",
    "NotificationDelivery",
]
