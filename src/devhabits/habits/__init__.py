"""Habit management and completion recording."""
