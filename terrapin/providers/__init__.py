"""
The built-in providers and their resource types.
"""
