"""
Services Module

Contains all business logic services. External integrations follow the
hybrid pattern: a Mock (development) and a Real (production) implementation
behind a cached factory.

Services:
    - geo: address geocoding (Google Maps) and distances
    - realtime: settings change broadcast (in-process or Redis)
    - notifications: SMS / email alerts (Twilio, SendGrid)
    - settings_store / settings_sync: cached key-value settings
    - delivery_zones: delivery address validation
    - business_hours: opening hours
    - catalog / orders / order_notifications: menu and orders
    - storage: image buckets
"""
