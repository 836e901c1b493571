"""
Meal Reco

Context-aware dish recommendations for a partner menu catalog:
  - Scoring engine (preferences, profile tags, vitals, novelty, bandit, suitability)
  - Ranking, pagination and the like/skip learning loop
  - Explanation synthesis (heuristic line, research evidence, generated narrative)
"""
