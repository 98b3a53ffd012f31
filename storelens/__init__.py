"""StoreLens - storefront analytics instrumentation analysis.

Loads a store's homepage and one product page in a real browser and reports
GA4 beacons, page timing, Google consent mode and Elevar configuration.
"""

__version__ = "0.1.0"
