from . import (
    workspaces,
    bookings,
    credits,
    payments,
    misc,
)

__all__ = [
    "workspaces",
    "bookings",
    "credits",
    "payments",
    "misc",
]
