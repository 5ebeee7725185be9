"""
Services Layer

Pure domain services that:
- Accept plain aggregates (Match, Tournament, League) plus an optional EngineContext
- Return Result objects or read-only projections
- Do NOT perform I/O or hold module-level session state
- Mutate only the aggregate they are handed
"""
