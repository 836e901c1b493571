"""Preference model, bandit statistics and the feedback loop."""
