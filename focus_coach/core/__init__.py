"""
Core modules for Focus Coach.

This package contains the pure logic for pricing, budgets, activity
classification, feedback scheduling and coaching context.
"""
