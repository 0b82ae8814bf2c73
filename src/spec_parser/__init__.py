"""Swagger / OpenAPI parsing into endpoint records."""
