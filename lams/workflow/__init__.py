"""
Lifecycle tables for every workflow entity
"""
