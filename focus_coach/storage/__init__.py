"""
Persistence for settings and the activity, usage and feedback ledgers.
"""
