"""HTTP routers of the deploy gateway."""
