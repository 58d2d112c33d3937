"""
Demo data for trying Focus Coach without real history.
"""
