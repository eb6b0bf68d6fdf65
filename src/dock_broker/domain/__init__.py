"""
Domain layer

Entities, value objects and port interfaces for the broker.
"""
