"""
Actor roles enumeration.

Defines the role types for the courier platform.
"""

import enum


class ActorRole(str, enum.Enum):
    """
    Actor role enumeration.

    Roles:
        CUSTOMER: Sends packages and follows their delivery
        DRIVER: Picks up and delivers packages assigned to them
        COURIER_ADMIN: Manages one courier company's drivers and packages
        SUPER_ADMIN: Oversees the whole network
    """
    CUSTOMER = "customer"
    DRIVER = "driver"
    COURIER_ADMIN = "courier_admin"
    SUPER_ADMIN = "super_admin"
