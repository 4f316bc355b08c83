"""
Batch job entry points.
"""
