"""GrantFlow agents."""
