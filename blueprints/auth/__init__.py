"""Captain authentication."""
