from archflow.models.submission import (  # noqa: F401
    AUTHORITY_TRANSITIONS,
    SUBMITTABLE_STATUSES,
    TERMINAL_STATUSES,
    Authority,
    AuthorityApiLog,
    AuthorityStatus,
    FeeStatus,
    FeeType,
    Submission,
    SubmissionCategory,
    SubmissionFee,
    SubmissionPriority,
    SubmissionStatus,
    SubmissionStatusChange,
    SubmissionType,
)
from archflow.models.document import (  # noqa: F401
    CommentType,
    Document,
    DocumentComment,
    DocumentOwnerType,
    DocumentShare,
    DocumentStatus,
    DocumentVersion,
    SharePermission,
    ShareStatus,
)
from archflow.models.workflow import (  # noqa: F401
    StepAction,
    Workflow,
    WorkflowPolicy,
    WorkflowStatus,
    WorkflowStep,
    WorkflowStepStatus,
    WorkflowStepType,
    WorkflowTargetType,
    WorkflowType,
)
