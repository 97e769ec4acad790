"""
Utility helpers package
"""
