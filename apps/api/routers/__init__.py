"""Routers package."""

from . import (
    health,
    credit,
    subscribers,
)
