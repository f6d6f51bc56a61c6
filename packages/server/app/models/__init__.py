# SQLModel definitions — imported here to ensure metadata is populated.
from .base import UUIDMixin, TimestampMixin  # noqa: F401
from .user import User  # noqa: F401
from .team import Team, TeamMember  # noqa: F401
from .project import Project, ProjectCollaborator  # noqa: F401
from .update import Update, UpdateReaction  # noqa: F401
from .invite import TeamInvite, ProjectInvite  # noqa: F401
