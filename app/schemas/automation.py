"""Schemas for workflow introspection, analysis and executive controls."""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any, Union
from datetime import datetime
from enum import Enum


class TriggerType(str, Enum):
    CHAT = "chat"
    WEBHOOK = "webhook"
    TELEGRAM = "telegram"
    SLACK = "slack"
    DISCORD = "discord"
    WHATSAPP = "whatsapp"
    EMAIL = "email"
    MANUAL = "manual"
    CRON = "cron"
    UNKNOWN = "unknown"


# Trigger types that represent a conversational entrypoint
CHAT_LIKE_TRIGGERS = frozenset({
    TriggerType.CHAT,
    TriggerType.TELEGRAM,
    TriggerType.SLACK,
    TriggerType.DISCORD,
    TriggerType.WHATSAPP,
    TriggerType.EMAIL,
})


class WorkflowCategory(str, Enum):
    AI_AGENT = "ai_agent"
    WEBHOOK_SERVICE = "webhook_service"
    DATA_PROCESSOR = "data_processor"
    AUTOMATION_PIPELINE = "automation_pipeline"
    NOTIFICATION_SYSTEM = "notification_system"


class NodeCategory(str, Enum):
    TRIGGER = "trigger"
    AI_MODEL = "ai_model"
    TOOL = "tool"
    DATA_SOURCE = "data_source"
    NOTIFICATION = "notification"
    CONTROL_FLOW = "control_flow"


class TriggerKind(str, Enum):
    CHAT = "chat"
    WEBHOOK = "webhook"
    MANUAL = "manual"


class ExecutiveView(str, Enum):
    DIGITAL_EMPLOYEE = "digital_employee"
    PROCESS = "process"


class ExecutionType(str, Enum):
    MANUAL = "manual"
    WEBHOOK = "webhook"
    TEST = "test"


# Introspection
class WorkflowTriggerInfo(BaseModel):
    node_id: str
    node_name: str
    type: TriggerType
    webhook_id: Optional[str] = None
    is_public: Optional[bool] = None
    requires_external_client: Optional[bool] = None
    prompt_field: Optional[str] = None  # chat triggers only


class AnalyzedWorkflow(BaseModel):
    workflow_id: str
    name: str
    triggers: List[WorkflowTriggerInfo] = []
    has_chat: bool = False
    has_webhook: bool = False
    has_telegram: bool = False

    def first_trigger(self, trigger_type: TriggerType) -> Optional[WorkflowTriggerInfo]:
        return next((t for t in self.triggers if t.type == trigger_type), None)

    def find_trigger(self, node_id: str) -> Optional[WorkflowTriggerInfo]:
        return next((t for t in self.triggers if t.node_id == node_id), None)


# Analysis
class NodeAnalysis(BaseModel):
    id: str
    name: str
    type: str
    category: NodeCategory
    description: str
    is_executable: bool
    has_output: bool
    connections: List[str] = []


class WorkflowCapabilities(BaseModel):
    can_execute_manually: bool = False
    has_webhook_trigger: bool = False
    has_scheduled_trigger: bool = False
    has_ai_components: bool = False
    has_data_processing: bool = False
    has_notifications: bool = False
    has_external_apis: bool = False
    requires_input: bool = False
    has_file_generation: bool = False
    has_memory: bool = False


class ExecutiveControl(BaseModel):
    type: str  # execute, test, monitor, configure
    label: str
    description: str
    available: bool = True
    endpoint: Optional[str] = None
    payload: Optional[Dict[str, Any]] = None


class ExecutionHistory(BaseModel):
    total: int = 0
    successful: int = 0
    failed: int = 0
    average_duration: float = 0.0  # milliseconds
    last_execution: Optional[datetime] = None


class KPI(BaseModel):
    label: str
    value: Union[int, float, str]
    trend: Optional[str] = None  # up, down, stable


class BusinessMetrics(BaseModel):
    description: str
    kpis: List[KPI] = []


class WorkflowInsight(BaseModel):
    workflow: Dict[str, Any]
    category: WorkflowCategory
    capabilities: WorkflowCapabilities
    nodes: List[NodeAnalysis] = []
    controls: List[ExecutiveControl] = []
    triggers: List[WorkflowTriggerInfo] = []
    execution_history: ExecutionHistory = Field(default_factory=ExecutionHistory)
    business_metrics: BusinessMetrics


# Intent resolution
class IntentInput(BaseModel):
    explicit_type: Optional[TriggerKind] = None
    explicit_node_id: Optional[str] = None
    payload: Optional[Dict[str, Any]] = None


class ResolveResult(BaseModel):
    kind: TriggerKind
    node: Optional[WorkflowTriggerInfo] = None
    reason: str


# Executive view model
class ViewTheme(BaseModel):
    tint: str
    bg_soft: str
    border_soft: str
    header: str


class ExecutiveStatus(BaseModel):
    label: str
    tone: str  # good, warn, bad, idle
    details: Optional[str] = None


class ExecutiveInsight(BaseModel):
    """Insight enriched with the executive dashboard presentation."""
    insight: WorkflowInsight
    view: ExecutiveView
    available_views: List[ExecutiveView]
    theme: ViewTheme
    status: ExecutiveStatus


class WorkflowInsightsResponse(BaseModel):
    insights: List[WorkflowInsight] = []
    total_workflows: int = 0
    active_workflows: int = 0
    total_executions: int = 0


# Execution control
class ExecutionRequest(BaseModel):
    workflow_id: str
    execution_type: ExecutionType = ExecutionType.TEST
    payload: Optional[Dict[str, Any]] = None


class NodeResult(BaseModel):
    node_id: str
    node_name: str
    status: str  # success, error, running
    output: Optional[Any] = None
    error: Optional[Any] = None
    duration: Optional[float] = None


class ExecutionOutcome(BaseModel):
    """Raw outcome of a single manual or webhook run."""
    execution_id: Optional[str] = None
    data: Optional[Any] = None
    node_results: List[NodeResult] = []


class ExecutionResult(BaseModel):
    success: bool
    execution_id: Optional[str] = None
    data: Optional[Any] = None
    error: Optional[str] = None
    duration: Optional[int] = None  # milliseconds
    node_results: Optional[List[NodeResult]] = None


class CurrentExecution(BaseModel):
    id: str
    started_at: Optional[datetime] = None
    current_node: Optional[str] = None
    progress: int = 0


class MonitoringMetrics(BaseModel):
    executions_today: int = 0
    success_rate: int = 0
    average_response_time: int = 0
    error_count: int = 0


class LiveMonitoring(BaseModel):
    workflow_id: str
    is_running: bool = False
    current_execution: Optional[CurrentExecution] = None
    recent_executions: List[Dict[str, Any]] = []
    metrics: MonitoringMetrics = Field(default_factory=MonitoringMetrics)


class TestScenario(BaseModel):
    __test__ = False  # not a pytest class

    name: str
    description: str
    payload: Dict[str, Any] = {}
    preferred_trigger_type: Optional[TriggerKind] = None
    expected_output: Optional[Any] = None


class WorkflowExecuteRequest(BaseModel):
    """Body of POST /automation/workflows/{id}/execute."""
    type: ExecutionType = ExecutionType.TEST
    payload: Dict[str, Any] = {}
    trigger_type: Optional[TriggerKind] = None
    trigger_node_id: Optional[str] = None


# AI agent
class ChatRequest(BaseModel):
    workflow_id: str
    message: str = Field(..., min_length=1)
    user_id: Optional[str] = None
    timestamp: Optional[str] = None
    trigger_node_id: Optional[str] = None


class ChatMetadata(BaseModel):
    execution_id: Optional[str] = None
    workflow_name: Optional[str] = None
    timestamp: datetime


class ChatResult(BaseModel):
    status: str = "completed"
    response: Any
    metadata: ChatMetadata
    raw: Optional[Any] = None


class ConnectRequest(BaseModel):
    workflow_id: str


class AgentCapabilities(BaseModel):
    chat: bool = True
    file_generation: bool = False
    scheduling: bool = False
    memory: bool = False


class AgentConnection(BaseModel):
    success: bool = True
    connected: bool = True
    workflow_name: str
    agent_type: str
    capabilities: AgentCapabilities


class AIResultMetadata(BaseModel):
    model: str = "unknown"
    confidence: float = 0.8
    execution_time: float = 0
    tokens: Optional[Any] = None


class AIResult(BaseModel):
    id: str
    node_id: str
    node_name: str
    type: str = "text_response"
    content: Any
    timestamp: Optional[str] = None
    metadata: AIResultMetadata = Field(default_factory=AIResultMetadata)
