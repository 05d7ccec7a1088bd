"""
Shared utilities: geometry helpers and cache-key derivation.
"""
