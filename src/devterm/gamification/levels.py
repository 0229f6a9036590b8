# src/devterm/gamification/levels.py

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from ..tasks.task_models import Task, TaskStatus
from ..users.user_models import User

XP_PER_LEVEL = 500
MAX_LEVEL = 100

LEVEL_TITLES: tuple[str, ...] = (
    "Null Pointer", "Syntax Trainee", "Hello Worlder", "Console Logger", "Variable Declarer",
    "Loop Looper", "Array Indexer", "Object Mapper", "Function Caller", "Script Kiddie",
    "Git Cloner", "Merge Conflicter", "Bug Hunter", "Patch Applied", "Code Monkey",
    "CSS Tinkerer", "Flexbox Fumbler", "Grid Grinder", "Responsive Rookie", "Pixel Pusher",
    "DOM Manipulator", "Event Listener", "Callback Hell Survivor", "Promise Keeper", "Async Awaiter",
    "API Consumer", "JSON Parser", "Fetch Fanatic", "RESTful Rookie", "GraphQL Grokcer",
    "Component Creator", "Prop Driller", "State Manager", "Hook Hooker", "Context Consumer",
    "Redux Wrestler", "MobX Master", "Zustand Zealot", "Router Ranger", "Single Page Architect",
    "Backend Beginner", "Node Novice", "Express Explorer", "Middleware Maniac", "Database Dabbler",
    "SQL Selecter", "NoSQL Nomad", "Schema Shaper", "Query Queen", "Migration Master",
    "Docker Docker", "Container Captain", "Kubernetes Kid", "Cloud Climber", "Serverless Surfer",
    "Test Tester", "Unit Unicorn", "Integration Invader", "E2E Expert", "TDD Titan",
    "Refactoring Rogue", "Clean Coder", "Pattern Practitioner", "SOLID Soldier", "DRY Defender",
    "Performance Polisher", "Memory Leaker", "Bundle Buster", "Optimization Oracle", "V8 Velocity",
    "Security Sentinel", "XSS Exterminator", "CSRF Crusher", "Auth Authority", "Encryption Enigma",
    "DevOps Dynamo", "CI/CD Commander", "Pipeline Pilot", "Infrastructure Idol", "Reliability Rock",
    "System Architect", "Microservice Monk", "Event Driven Entity", "Scalability Sage", "High Availability Hero",
    "Tech Lead", "Mentor Machine", "Code Review Rex", "Legacy Liberator", "Technical Debt Destroyer",
    "Fellow Engineer", "Distinguished Dev", "Principal Programmer", "Algorithmic Alchemist", "Binary Wizard",
    "Neural Net Master", "Deep Learning Deity", "Quantum Coder", "Cyberpunk Legend", "The Singularity",
)


@dataclass(frozen=True, slots=True)
class LevelInfo:
    level: int
    title: str
    progress: float  # 0..100 within the current level
    next_level_xp: int | None  # None at max level


def level_info(xp: int) -> LevelInfo:
    xp = max(0, int(xp))
    level = min(MAX_LEVEL, xp // XP_PER_LEVEL + 1)
    if level == MAX_LEVEL:
        return LevelInfo(level=MAX_LEVEL, title=LEVEL_TITLES[MAX_LEVEL - 1], progress=100.0, next_level_xp=None)
    return LevelInfo(
        level=level,
        title=LEVEL_TITLES[level - 1],
        progress=(xp % XP_PER_LEVEL) / XP_PER_LEVEL * 100.0,
        next_level_xp=level * XP_PER_LEVEL,
    )


@dataclass(frozen=True, slots=True)
class LeaderboardRow:
    rank: int
    user: User
    level: LevelInfo
    completed: int
    time_spent: float


def build_leaderboard(users: Iterable[User], tasks: Iterable[Task]) -> list[LeaderboardRow]:
    """Users by XP (descending, stable for ties) with per-user completion stats."""
    task_list = list(tasks)
    ranked = sorted(users, key=lambda u: -int(u.xp))
    rows: list[LeaderboardRow] = []
    for i, u in enumerate(ranked, start=1):
        mine = [t for t in task_list if t.assigned_to == u.id]
        rows.append(
            LeaderboardRow(
                rank=i,
                user=u,
                level=level_info(u.xp),
                completed=sum(1 for t in mine if t.status == TaskStatus.DONE),
                time_spent=sum(float(t.time_spent or 0.0) for t in mine),
            )
        )
    return rows
