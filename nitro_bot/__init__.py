"""Daily $NITRO claim and check-in automation for Nitrograph wallets."""

__version__ = "1.0.0"
