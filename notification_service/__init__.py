"""Notification dispatch service.

Fans one notification out to many recipients and drives each per-recipient
delivery to a terminal outcome through pluggable channels.
"""

__version__ = "0.1.0"
