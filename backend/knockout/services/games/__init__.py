"""Game domain services: seating engine, rounds, scoring and ratings.

This package contains the domain logic that is imported by HTTP routes,
keeping transport concerns separated from core game mechanics.
"""
