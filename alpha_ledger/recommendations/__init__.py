"""
Recommendation engine: turns market snapshots (and held lots) into
buy / hold / sell / avoid recommendations.

Modules
-------
scorer : policy constants + banding and weighted scoring primitives — pure
         functions, no I/O.
engine : RecommendationEngine — one entry point with an explicit Strategy.
ranker : latest_per_code() + top_pick() + build_decision_matrix() —
         list views and portfolio valuation.
"""
