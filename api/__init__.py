"""
Lawyer Directory Moderation API.

HTTP surface over the review moderation store, the lead aggregator and the
lead intake service.
"""

__version__ = "0.1.0"
