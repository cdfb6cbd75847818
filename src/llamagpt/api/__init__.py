"""HTTP surface over the conversation service."""
