"""Core library: configuration, validation, supervision, and result types."""
