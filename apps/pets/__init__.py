"""Pets app package.

Pets belong to a billing account; every booking is made for one pet and
is invoiced to that pet's account.
"""
