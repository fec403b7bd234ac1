from fastapi import APIRouter, Depends, status
from pydantic import Field
from sqlalchemy.orm import Session

from .db import get_db
from .deps import require_entitlement, require_roles
from .entitlements import get_course
from .errors import ok
from .models import Course, Role, User
from .schemas import CamelModel, CourseOut

router = APIRouter(prefix="/courses", tags=["courses"])


class CourseIn(CamelModel):
    title: str = Field(min_length=3, max_length=120)
    description: str = Field(default="", max_length=2000)
    category: str = Field(default="", max_length=60)
    price: int = Field(default=0, ge=0)
    currency: str = Field(default="INR", min_length=3, max_length=3)


@router.get("")
def all_courses(db: Session = Depends(get_db)):
    courses = db.query(Course).order_by(Course.id).all()
    return ok("Courses fetched successfully", [CourseOut.of(c) for c in courses])


@router.post("", status_code=status.HTTP_201_CREATED)
def create_course(payload: CourseIn, db: Session = Depends(get_db),
                  user: User = Depends(require_roles(Role.TEACHER, Role.ADMIN))):
    course = Course(
        title=payload.title.strip(),
        description=payload.description,
        category=payload.category,
        price=payload.price,
        currency=payload.currency.upper(),
        created_by=user.id,
    )
    db.add(course)
    db.commit()
    return ok("Course created successfully", CourseOut.of(course))


@router.get("/{course_id}")
def view_course(course_id: int, db: Session = Depends(get_db), user: User = Depends(require_entitlement)):
    course = get_course(db, course_id)
    return ok("Course fetched successfully", CourseOut.of(course))
