"""Game session core: turn validation, lifecycle, notification, repair.

HTTP routes and socket handlers import from here; nothing in this package
knows about request parsing or response shapes.
"""
