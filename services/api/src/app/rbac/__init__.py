"""Role-based access control: engine, seeding and HTTP endpoints."""
