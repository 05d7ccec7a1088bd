"""
Core domain logic and the Quart web application.
"""
