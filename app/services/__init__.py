"""Scheduling core: slot arithmetic, availability aggregation and booking writes."""
