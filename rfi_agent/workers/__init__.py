# =============================================================================
# Workers Package — Celery Background Tasks
# =============================================================================
#   - celery_app.py: Celery application configuration + beat schedule
#   - tasks.py: batch job processing and job-store cleanup
#
# A batch of questions can take many minutes (several LLM round-trips per
# question, strictly sequential). The API persists the job and returns its
# id immediately; a worker drives it to a terminal status.
# =============================================================================
