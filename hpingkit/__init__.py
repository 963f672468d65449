"""Raw IPv4 packet construction from text descriptions, with checksums, option parsing and supporting utilities."""

__version__ = "0.1.0"