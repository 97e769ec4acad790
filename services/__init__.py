"""
Domain services package
"""
