"""Current-user profile."""
