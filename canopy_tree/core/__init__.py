"""Tree engine: immutable models, pure forest operations and services."""
