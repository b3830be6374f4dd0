"""Title generation core: backends, normalization, refinement and caching."""
