"""Enrollments module - Student enrollments at college branches."""
