"""DockSlot test suite."""
