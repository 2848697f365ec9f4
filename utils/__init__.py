"""
Shared helpers (text normalization, time zone handling).
"""
