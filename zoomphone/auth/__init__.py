"""OAuth2 authorization-code flow and token lifecycle for the Zoom API."""
