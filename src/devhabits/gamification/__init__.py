"""Streak and XP/level computation."""
