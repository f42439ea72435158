"""Application services: users, authentication and books."""
