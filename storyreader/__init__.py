"""
Interactive story reading engine.
"""
