"""Core shared definitions for testvault."""
