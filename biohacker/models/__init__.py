"""
Biohacker - Data Models
"""
