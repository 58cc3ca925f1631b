"""Generic demo module 01."""
