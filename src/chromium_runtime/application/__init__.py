"""
Application Layer

Invocation use case and request DTOs.
"""
