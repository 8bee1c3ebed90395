"""entitykit CLI package."""
