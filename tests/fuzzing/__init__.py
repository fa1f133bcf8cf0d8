"""
Property-based tests for the REV distribution contracts.
"""
