"""Bookings app package.

This app encapsulates the booking domain: the booking aggregate and its
lifecycle table, sitter schedule conflict detection, and the use cases
that create, move, update and delete bookings. Double booking is
prevented by locking the sitter row for the duration of the creating
transaction.
"""
