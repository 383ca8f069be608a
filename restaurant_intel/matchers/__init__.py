"""Name/address matching heuristics."""
