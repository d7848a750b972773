"""
Colleges module - Colleges, their branches, contacts and notes.

Branch commission rates fall back to the college default when unset.
"""
