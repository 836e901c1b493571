"""
Recommendation layer (Meal Reco)

RecommendationSession ties the pieces together:
  - Layer-0 heuristics (hard filters, vitals rules, profile tags)
  - Learned signals (tag preference weights, bandit success rates)
  - Layer-2 collaborators (external suitability score, research evidence,
    generated narrative), each with a local fallback

Ranking stays a pure function of its inputs; the session owns the mutable
state (page, context, stores) and the order of mutate, persist, re-rank.
"""
