"""HTTP triggers for grant verification."""
