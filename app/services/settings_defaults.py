"""
Default content seeded into the settings table on first start.

Only keys missing from the table are written; staff edits are never
overwritten.
"""

from app.schemas import DeliveryZone, ShippingZoneSettings, WeeklyHours

SHIPPING_SETTINGS_KEY = "shippingZoneSettings"
DELIVERY_ZONES_KEY = "deliveryZones"
BUSINESS_HOURS_KEY = "businessHours"

DEFAULT_DELIVERY_ZONES = [
    DeliveryZone(
        id="1",
        name="Zone 1 (0-5km)",
        max_distance=5,
        delivery_fee=3.00,
        estimated_time="20-30 minutes",
    ),
    DeliveryZone(
        id="2",
        name="Zone 2 (5-10km)",
        max_distance=10,
        delivery_fee=5.00,
        estimated_time="30-45 minutes",
    ),
    DeliveryZone(
        id="3",
        name="Zone 3 (10-15km)",
        max_distance=15,
        delivery_fee=8.00,
        estimated_time="45-60 minutes",
    ),
]


DEFAULT_SETTINGS: dict = {
    "restaurantSettings": {
        "totalSeats": 50,
        "reservationDuration": 120,
        "openingTime": "11:30",
        "closingTime": "22:00",
        "languages": ["it", "en", "ar", "fa"],
        "defaultLanguage": "it",
    },
    "contactContent": {
        "address": "C.so Giulio Cesare, 36, 10152 Torino TO",
        "phone": "+393479190907",
        "email": "info@pizzeriaregina2000.it",
        "mapUrl": "https://maps.google.com",
        "hours": "Lun-Dom: 18:30 - 22:30",
    },
    "heroContent": {
        "heading": "Pizzeria Regina 2000",
        "subheading": "Authentic Italian pizza, baked in a wood-fired oven",
        "backgroundImage": "",
    },
    "aboutContent": {
        "heading": "About us",
        "paragraphs": [],
        "image": "",
    },
    "galleryContent": {
        "heading": "Our Gallery",
        "subheading": "",
    },
    "galleryImages": [],
    "logoSettings": {
        "logoUrl": "",
        "altText": "Pizzeria Regina 2000 Logo",
    },
    "navbarLogoSettings": {
        "logoUrl": "",
        "altText": "Pizzeria Regina 2000 Navbar Logo",
        "showLogo": True,
        "logoSize": "medium",
    },
    "weOfferContent": {
        "heading": "We Offer",
        "subheading": "Discover our authentic Italian specialties",
        "offers": [],
    },
    "popups": [],
    BUSINESS_HOURS_KEY: WeeklyHours().model_dump(by_alias=True),
    SHIPPING_SETTINGS_KEY: ShippingZoneSettings().model_dump(by_alias=True),
    DELIVERY_ZONES_KEY: [zone.model_dump(by_alias=True) for zone in DEFAULT_DELIVERY_ZONES],
}
