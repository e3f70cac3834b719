"""
Infrastructure Module

Cache tiers, background cache tasks and metrics.
"""
