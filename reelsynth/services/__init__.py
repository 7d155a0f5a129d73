"""Services: LLM clients, metadata and the recommendation pipeline."""
