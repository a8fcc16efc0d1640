"""Sitters app package.

Service offerings published by sitters. A booking snapshots the price of
its offering and derives its end time from the offering duration.
"""
