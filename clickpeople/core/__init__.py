"""Click People Core Platform Module.

Shared infrastructure used across all Click People sections:
- Database repository base class
- Organization directory (areas, directors, hierarchy levels)
- Approval workflow engine
- Logging utilities
"""
