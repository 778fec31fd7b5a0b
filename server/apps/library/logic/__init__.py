"""Business logic for library app.

Operations are plain functions grouped by concern. Every public operation
checks project permissions first and runs as one transaction.
"""
