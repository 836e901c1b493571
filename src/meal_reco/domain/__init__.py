"""Domain records shared by every layer of the engine."""
