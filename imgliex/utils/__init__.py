"""
Shared utilities: errors, logging and console output.
"""
