# =============================================================================
# Agents Package — Tool-Use Answering and Batch Orchestration
# =============================================================================
#   - prompts.py: system prompt for the answering engine
#   - tools.py: tool schemas advertised to the LLM + ToolRouter dispatch
#   - answerer.py: LangGraph state machine running the tool-call loop for
#     one question (call provider → run tools → call provider ... → done)
#   - batch.py: drives the answerer over every question of a batch job
# =============================================================================
