# =============================================================================
# API Package — FastAPI Route Handlers
# =============================================================================
#   - ask.py: single-question answering
#   - batch.py: batch job creation and status polling
#   - qa_pairs.py: cached answer listing, search, and creation
#   - health.py: liveness + knowledge index metadata
#   - deps.py: overridable dependencies shared by the routes
# =============================================================================
