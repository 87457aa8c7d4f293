"""
Fund Event Sync

Reconciles SFT and vault contract events into the fund platform's
token, referral and reward records.
"""

__version__ = "0.1.0"
