"""
Gamification.

- achievements.py: the achievement catalog (plain data) and its predicates
- evaluator.py: completion XP table and the achievement evaluator
- levels.py: level titles and the leaderboard
"""
