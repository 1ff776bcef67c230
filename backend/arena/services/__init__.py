"""
Services Layer

Bracket business logic that:
- Accepts domain inputs (IDs, sessions, team lists)
- Returns domain outputs (models, skeletons, dicts)
- Does NOT depend on HTTP request/response objects
- Raises BracketError subclasses; routes translate them to HTTP errors
"""
