"""
Permission constants — the fixed universe of admin dashboard capabilities.

Each role maps to a subset of these through ROLE_PERMISSIONS. The query
engine gates every capability binding on exactly one of them.
"""

from enum import Enum


class Permission(str, Enum):
    # ── Dashboard ──
    VIEW_DASHBOARD = "view_dashboard"

    # ── Orders ──
    MANAGE_ORDERS = "manage_orders"

    # ── Restaurants ──
    MANAGE_RESTAURANTS = "manage_restaurants"
    APPROVE_RESTAURANTS = "approve_restaurants"
    SUSPEND_RESTAURANTS = "suspend_restaurants"

    # ── People ──
    MANAGE_DELIVERY_PARTNERS = "manage_delivery_partners"
    MANAGE_CUSTOMERS = "manage_customers"

    # ── Analytics ──
    VIEW_ANALYTICS = "view_analytics"

    # ── Support ──
    MANAGE_SUPPORT_TICKETS = "manage_support_tickets"

    # ── Admin ──
    MANAGE_USERS = "manage_users"
    SYSTEM_SETTINGS = "system_settings"
