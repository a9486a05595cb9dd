"""
Utilities - Connection helpers and error formatting
"""
