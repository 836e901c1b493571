"""Scoring engine and ranking/pagination."""
