"""LLM access for the extractor. The model proposes assertions; it never writes rule state."""
