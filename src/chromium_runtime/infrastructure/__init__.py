"""
Infrastructure Layer

Adapters for process supervision, configuration and logging.
"""
