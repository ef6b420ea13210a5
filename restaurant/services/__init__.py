"""
                        Services Module

Business logic of the restaurant backend. Services take their
repositories, unit of work and authorization policy at construction.

Services:
    - authorization: role and ownership policy
    - orders: lifecycle, line items, order service
    - reservations: table bookings
    - catalog: food menu
    - inventory: stock items, entries and logs
"""

from restaurant.services.authorization import Action, AuthorizationPolicy, Decision
from restaurant.services.catalog import FoodService
from restaurant.services.inventory import InventoryService
from restaurant.services.orders import OrderService
from restaurant.services.reservations import ReservationService

__all__ = [
    "Action",
    "AuthorizationPolicy",
    "Decision",
    "FoodService",
    "InventoryService",
    "OrderService",
    "ReservationService",
]
