"""
Biohacker - API Routers
"""
