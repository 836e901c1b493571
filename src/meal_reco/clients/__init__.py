"""Network collaborators: suitability scoring, evidence, nutrition, narrative."""
