# SQLAlchemy models
from .base import Base
from .catalog import (
    ProblemRow,
    ProblemTag,
    TopicDependency,
    TopicRow,
)
from .tracking import (
    UserIntervalStat,
    UserProblem,
    UserTopicStat,
)
