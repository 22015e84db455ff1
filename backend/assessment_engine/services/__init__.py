"""Services package for LLM access and assessment processing."""
