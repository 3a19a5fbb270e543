"""Core types, configuration and helpers shared by every ATX component."""
