"""
Restaurant Storefront

Backend for a restaurant storefront: menu and stock, online orders with
distance-based delivery zones, and admin-editable content kept in sync
across workers.
"""

__version__ = "1.0.0"
