"""HTTP surface: FastAPI application, dependencies and route modules."""
