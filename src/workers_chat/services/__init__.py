"""Service helpers shared by the routers and the client."""
