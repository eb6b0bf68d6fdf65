"""
Infrastructure layer

Adapters for Docker, the sync store and host metrics, plus configuration,
logging and background task plumbing.
"""
