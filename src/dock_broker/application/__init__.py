"""
Application layer

Services orchestrating domain objects: directory publishing, binding,
job intake, execution supervision and orphan reclamation.
"""
