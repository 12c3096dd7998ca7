"""Core domain: ports, pure scoring logic and services."""
