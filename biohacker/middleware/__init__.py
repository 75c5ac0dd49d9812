"""
Biohacker - Middleware
"""
