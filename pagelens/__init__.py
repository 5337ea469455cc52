"""pagelens — browser-page introspection over Playwright."""

__version__ = "0.1.0"
