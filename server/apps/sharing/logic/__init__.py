"""Business logic for share links."""
