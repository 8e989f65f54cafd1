"""Form handlers and queries shared by the route blueprints."""
