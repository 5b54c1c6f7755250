"""HTTP routers for the `/api` surface."""
