"""Organization directory: areas, their directors and hierarchy levels."""
