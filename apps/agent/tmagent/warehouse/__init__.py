"""Warehouse data layer: pool, limiter, cache, query synthesis and execution."""
