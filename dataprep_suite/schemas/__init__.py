"""
Request schemas for the Data Preparedness Suite API.
"""
