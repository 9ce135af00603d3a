"""
Conformance scenarios. Every module in this package is imported by discovery.
"""
