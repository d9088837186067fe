import structlog
from sqlalchemy.orm import Session

from .cache import delete_cache_pattern
from .models import CourseORM

logger = structlog.get_logger(__name__)

SAMPLE_COURSES = [
    {
        "title": "Introduction to Web Development",
        "description": "Learn the basics of HTML, CSS, and JavaScript. Build your first website "
                       "from scratch and understand the fundamentals of web development.",
        "thumbnail": "https://images.unsplash.com/photo-1498050108023-c5249f4df085",
        "duration": 180,
    },
    {
        "title": "Python Programming Masterclass",
        "description": "Master Python programming from beginner to advanced. Learn data structures, "
                       "algorithms, and real-world applications.",
        "thumbnail": "https://images.unsplash.com/photo-1526374965328-7f61d4dc18c5",
        "duration": 240,
    },
    {
        "title": "UI/UX Design Fundamentals",
        "description": "Discover the principles of user interface and user experience design. "
                       "Create beautiful and functional digital products.",
        "thumbnail": "https://images.unsplash.com/photo-1561070791-2526d30994b5",
        "duration": 150,
    },
]


def seed_sample_courses(db: Session) -> int:
    """Fills an empty catalog with the sample courses. Returns how many were added."""
    if db.query(CourseORM.id).first() is not None:
        return 0
    db.add_all(CourseORM(**c) for c in SAMPLE_COURSES)
    db.commit()
    delete_cache_pattern("courses:*")
    logger.info("sample_courses_seeded", count=len(SAMPLE_COURSES))
    return len(SAMPLE_COURSES)
