"""
Shared helpers for GenBench
"""
