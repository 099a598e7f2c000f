"""Pydantic schemas for the course progress view."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from .service import CourseProgressView


class SectionProgressResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    completed: int
    total: int
    percentage: int = Field(..., ge=0, le=100)


class NextLessonResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    section: str
    order: int
    duration: int | None = None


class CompletionEstimateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    remaining_minutes: int
    days_remaining: int
    label: str


class CourseProgressResponse(BaseModel):
    """Complete course progress for the caller."""

    course_id: UUID
    enrollment_id: UUID
    progress: int = Field(..., ge=0, le=100)
    lessons_completed: int
    lessons_total: int
    sections: list[SectionProgressResponse]
    next_lesson: NextLessonResponse | None = None
    review_mode: bool = Field(
        default=False, description="Every lesson is done; next lesson restarts"
    )
    estimate: CompletionEstimateResponse

    @classmethod
    def from_view(cls, view: CourseProgressView) -> "CourseProgressResponse":
        return cls(
            course_id=view.course.id,
            enrollment_id=view.enrollment.id,
            progress=view.progress,
            lessons_completed=len(
                view.enrollment.completed_lessons & view.course.lesson_ids
            ),
            lessons_total=len(view.course.lessons),
            sections=[
                SectionProgressResponse.model_validate(s) for s in view.sections
            ],
            next_lesson=(
                NextLessonResponse.model_validate(view.next_lesson)
                if view.next_lesson
                else None
            ),
            review_mode=view.review_mode,
            estimate=CompletionEstimateResponse.model_validate(view.estimate),
        )
