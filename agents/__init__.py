"""Interview agents: scoring, budgets, phases and planning."""
