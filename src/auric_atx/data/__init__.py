"""Trade feeds."""
