"""LLM text generation, prompts and output cleanup."""
