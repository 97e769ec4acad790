"""
Database setup scripts
"""
