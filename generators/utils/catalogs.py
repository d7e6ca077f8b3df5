"""Fixed catalogs for synthetic payment events."""

MERCHANTS = [
    "Amazon",
    "eBay",
    "Walmart",
    "Target",
    "Best Buy",
    "Apple Store",
    "Microsoft",
    "Netflix",
    "Spotify",
    "Uber",
    "Airbnb",
    "Starbucks",
    "McDonald's",
    "Home Depot",
    "Costco",
]

LOCATIONS = [
    "New York, USA",
    "London, UK",
    "Tokyo, Japan",
    "Sydney, Australia",
    "Berlin, Germany",
    "Paris, France",
    "Toronto, Canada",
    "Singapore",
    "Mumbai, India",
    "São Paulo, Brazil",
]

DEVICES = ["mobile", "desktop", "tablet"]

BROWSERS = ["Chrome", "Firefox", "Safari", "Edge"]

# (probability, low, high): 60% small, 30% medium, 10% large
AMOUNT_TIERS: list[tuple[float, float, float]] = [
    (0.6, 1.0, 100.0),
    (0.3, 100.0, 500.0),
    (0.1, 500.0, 5000.0),
]
