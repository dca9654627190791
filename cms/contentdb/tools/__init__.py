"""
Command-line tools for ContentDB.

Tools:
- schema_cli: Export, diff and validate schema definitions
"""
