"""Authentication for operators of the deploy gateway."""
