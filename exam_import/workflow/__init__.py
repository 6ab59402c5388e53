"""Pipeline stages, leaf-first: validation, extraction, normalization, chunking, AI extraction, dedup, staging."""
