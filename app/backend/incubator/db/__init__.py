"""Durable local store plumbing."""
