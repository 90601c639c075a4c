from __future__ import annotations

from kitadoc.models.user import UserRow  # noqa: F401
from kitadoc.models.teacher import TeacherRow  # noqa: F401
from kitadoc.models.child import ChildRow  # noqa: F401
