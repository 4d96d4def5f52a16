"""
Services

- config - agent configuration cache and lookup service
"""
