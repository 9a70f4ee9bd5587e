"""
Core infrastructure: configuration, logging, persistence, errors and the workflow facade
"""
