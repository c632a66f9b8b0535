"""Squad backend endpoint modules."""
