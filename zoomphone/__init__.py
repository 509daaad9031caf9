"""Zoom Phone integration: OAuth token lifecycle, resilient REST client, webhooks.

Subpackages:
    auth      - token store, OAuth token lifecycle manager, callback server
    http      - retrying HTTP client and the API error taxonomy
    webhooks  - signature verification, dedup set, dispatch queue, FastAPI routes
    services  - call history and recording operations built on the above
    storage   - local persistence for downloaded recordings
"""

__version__ = "0.3.0"
