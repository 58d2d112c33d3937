"""
Typed configuration decoded from the settings store.
"""
