"""Raw payload models for upstream APIs."""
