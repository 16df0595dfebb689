"""DevHabits: habit tracking with GitHub-driven auto-completion."""

__version__ = "0.1.0"
