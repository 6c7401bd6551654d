"""
Services Layer

Lottery business logic that:
- Accepts domain inputs (IDs, dates, sessions, plain dataclasses)
- Returns domain outputs (models, result objects, dicts)
- Does NOT depend on HTTP request/response objects
- Commits only where an operation is documented as writing
"""
