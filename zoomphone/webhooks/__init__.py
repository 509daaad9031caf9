"""Webhook inbound system.

Receives Zoom Phone event notifications.
Each delivery is signature-verified, deduplicated, and dispatched async.
"""
