"""Explanation synthesis: heuristic line, evidence link, narrative with fallback."""
