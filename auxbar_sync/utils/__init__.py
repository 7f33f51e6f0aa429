"""
Shared helpers: text formatting and structured event logging.
"""
