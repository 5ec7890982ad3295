"""tradd - remote add client for the Transmission BitTorrent daemon."""

__version__ = "0.1.0"
