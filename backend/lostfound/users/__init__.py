"""User profile lookups for chat lists and chat creation."""
