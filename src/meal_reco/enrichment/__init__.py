"""Evidence/macro cache and catalog normalisation."""
