"""Services for the generate, heal and score loop."""
