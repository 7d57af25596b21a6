"""Teamescrow - escrow and budget allocation engine for team projects.

This package reserves client money for multi-freelancer projects, locks it
into per-member tasks and payout records, releases it to freelancers and
refunds what is left, while an auto-recruiter fills open team roles.
"""

__version__ = "0.1.0"
