# =============================================================================
# Security Questionnaire Assistant
# =============================================================================
# Answers security / compliance questions (RFIs, vendor assessments) with an
# LLM that calls retrieval tools, and returns the answer plus citations.
# Many questions can be submitted as one batch job that runs in a Celery
# worker while clients poll for progress.
#
# Package structure:
#   rfi_agent/
#   ├── api/          → FastAPI route handlers (ask, batch, qa-pairs, health)
#   ├── agents/       → Answering engine (LangGraph tool-use loop), tool
#   │                    router, batch orchestrator
#   ├── db/           → SQLAlchemy engine, session, ORM models
#   ├── models/       → Pydantic V2 domain + request/response schemas
#   ├── services/     → LLM provider, retrieval sources, job store
#   └── workers/      → Celery app and task definitions
# =============================================================================
