"""Default badge catalog, seeded at startup."""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from skillpath.db.models import Badge

logger = logging.getLogger(__name__)

BADGE_SEED_DATA: list[dict] = [
    {
        "name": "Welcome",
        "description": "Welcome aboard! You've taken the first step on your learning journey.",
        "icon": "badges/welcome.png",
        "category": "special",
        "level": 1,
        "points_awarded": 50,
        "criteria": "join:platform:1",
    },
    {
        "name": "Video Watcher",
        "description": "You've watched your first video. Knowledge is power!",
        "icon": "badges/video-watcher.png",
        "category": "video",
        "level": 1,
        "points_awarded": 50,
        "criteria": "video:watch:1",
    },
    {
        "name": "Social Butterfly",
        "description": "You've made your first comment. Engaging with others enhances learning!",
        "icon": "badges/social-butterfly.png",
        "category": "social",
        "level": 1,
        "points_awarded": 25,
        "criteria": "comment:post:1",
    },
    {
        "name": "Blogger",
        "description": "You've published your first blog post. Sharing knowledge is powerful!",
        "icon": "badges/blogger.png",
        "category": "blog",
        "level": 1,
        "points_awarded": 150,
        "criteria": "blog:publish:1",
    },
    {
        "name": "Course Completer",
        "description": "You've completed your first course. Congratulations on your achievement!",
        "icon": "badges/course-completer.png",
        "category": "course",
        "level": 2,
        "points_awarded": 200,
        "criteria": "course:complete:1",
    },
    {
        "name": "3-Day Streak",
        "description": "You've maintained a 3-day learning streak. Consistency is key!",
        "icon": "badges/streak-3.png",
        "category": "special",
        "level": 1,
        "points_awarded": 75,
        "criteria": "streak:3",
    },
    {
        "name": "7-Day Streak",
        "description": "You've maintained a 7-day learning streak. You're building great habits!",
        "icon": "badges/streak-7.png",
        "category": "special",
        "level": 2,
        "points_awarded": 150,
        "criteria": "streak:7",
    },
    {
        "name": "30-Day Streak",
        "description": "You've maintained a 30-day learning streak. You're unstoppable!",
        "icon": "badges/streak-30.png",
        "category": "special",
        "level": 3,
        "points_awarded": 500,
        "criteria": "streak:30",
    },
    {
        "name": "Level 5 Achiever",
        "description": "You've reached Level 5! Your dedication to learning is impressive.",
        "icon": "badges/level-5.png",
        "category": "special",
        "level": 3,
        "points_awarded": 250,
        "criteria": "level:5",
    },
    {
        "name": "Level 10 Master",
        "description": "You've reached Level 10! You're becoming a master learner.",
        "icon": "badges/level-10.png",
        "category": "special",
        "level": 4,
        "points_awarded": 500,
        "criteria": "level:10",
    },
    {
        "name": "Level 25 Guru",
        "description": "You've reached Level 25! Your commitment to education is extraordinary.",
        "icon": "badges/level-25.png",
        "category": "special",
        "level": 5,
        "points_awarded": 1000,
        "criteria": "level:25",
    },
    {
        "name": "Quiz Master",
        "description": "You've aced your first quiz with a perfect score!",
        "icon": "badges/quiz-master.png",
        "category": "quiz",
        "level": 2,
        "points_awarded": 150,
        "criteria": "quiz:perfect:1",
    },
]


async def seed_badges(db: AsyncSession) -> int:
    """Insert catalog badges that are missing by name. Returns number inserted.

    Existing rows are left alone so admin edits survive restarts.
    """
    existing = set((await db.execute(select(Badge.name))).scalars().all())
    seeded = 0
    for badge_data in BADGE_SEED_DATA:
        if badge_data["name"] in existing:
            continue
        db.add(Badge(**badge_data, is_hidden=False))
        seeded += 1

    await db.commit()
    logger.info("Seeded %d badge definitions", seeded)
    return seeded
