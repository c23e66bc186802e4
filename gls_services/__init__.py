"""Cross-module services: role-based access control."""
