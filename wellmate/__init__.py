"""WellMate companion: relationship-aware dialogue for a wellness app."""
