"""Model, tools and turn orchestration."""
