from .paper import (
    BankQuestion,
    PaperQuestion,
    GeneratedPaper,
    ClientQuestion,
    ClientPaper,
    PaperResponse,
)
from .exam import ExamConfigUpsert, ExamConfigResponse, ExamInfo
from .proctoring import (
    ClientInfo,
    StartSessionRequest,
    StartSessionResponse,
    ActiveSessionSummary,
    ActiveSessionResponse,
    EventRequest,
    EventResponse,
    SnapshotResponse,
)
from .attempt import (
    SubmitAttemptRequest,
    ProctorFlagsSnapshot,
    AttemptResponse,
    ResultView,
    AttemptListItem,
)
from .eligibility import EligibilityResponse, RetakeRules
from .admin import (
    SessionListItem,
    SessionDetail,
    EventItem,
    SnapshotItem,
    SessionDetailResponse,
    ReviewRequest,
)
