"""
Interfaces Layer

Entry points exposed to users.
"""
