"""
HTTP adapters for the directory and policy collaborators.
"""
