# =============================================================================
# Models Package — Pydantic V2 Schemas
# =============================================================================
#   - jobs.py: batch job domain models (returned by the job store)
#   - requests.py: API request bodies
#   - responses.py: API response bodies
# =============================================================================
