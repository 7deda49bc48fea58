"""HTTP routers and dependencies."""
