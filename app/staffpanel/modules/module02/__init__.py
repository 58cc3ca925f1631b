"""Generic demo module 02."""
