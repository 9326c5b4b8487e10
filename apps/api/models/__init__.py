"""Models package."""

from .user import User
from .package import Package
from .subscriber import Subscriber
from .credit import Credit
