"""
Benchmark routines.
"""
