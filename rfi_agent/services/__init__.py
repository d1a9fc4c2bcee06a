# =============================================================================
# Services Package — Business Logic
# =============================================================================
#   - llm.py: Anthropic provider with tool use (tagged content blocks)
#   - knowledge_index.py: offline snapshot of the workspace, keyword search
#   - qa_store.py: admin-curated cached answers
#   - workspace.py: live workspace search/fetch over the Notion REST API
#   - docs_search.py: search over the public documentation corpus
#   - retrieval.py: result type and separator shared by the sources
#   - job_store.py: persisted batch-job records
# =============================================================================
