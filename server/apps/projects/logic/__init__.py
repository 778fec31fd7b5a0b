"""Business logic layer for projects app.

Currently holds the authorization gate used by the file library:
role resolution and permission predicates.
"""
