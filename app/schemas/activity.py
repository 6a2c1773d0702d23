from pydantic import BaseModel, Field
from typing import Optional, Dict, Any, List
from enum import Enum


class ActivityAction(str, Enum):
    # Generic CRUD
    CREATE = "CREATE"
    READ = "READ"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    EXPORT = "EXPORT"
    ASSIGN = "ASSIGN"
    APPROVE = "APPROVE"
    # Authentication
    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"
    ACCESS_DENIED = "ACCESS_DENIED"
    SETUP_COMPLETE = "SETUP_COMPLETE"
    # Workflows
    WORKFLOW_EXECUTED = "WORKFLOW_EXECUTED"
    WORKFLOW_FAILED = "WORKFLOW_FAILED"
    SYSTEM_EVENT = "SYSTEM_EVENT"


class ResourceType(str, Enum):
    USER = "user"
    CUSTOMER = "customer"
    WORKFLOW = "workflow"
    SYSTEM = "system"
    AUTHENTICATION = "authentication"
    SECURITY_EVENT = "security_event"


class ActivitySeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ActivityLogEntry(BaseModel):
    user_id: Optional[str] = None
    action: ActivityAction
    resource_type: ResourceType
    resource_id: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    request_path: Optional[str] = None
    request_method: Optional[str] = None
    additional_context: Dict[str, Any] = Field(default_factory=dict)
    severity: ActivitySeverity = ActivitySeverity.LOW
    description: Optional[str] = None


class ActivityLogRequest(BaseModel):
    """Client-side event reported by the dashboard"""
    action: ActivityAction
    resource_type: ResourceType
    resource_id: Optional[str] = None
    additional_context: Dict[str, Any] = Field(default_factory=dict)
    severity: ActivitySeverity = ActivitySeverity.LOW
    description: Optional[str] = None


class ActivityLogListResponse(BaseModel):
    logs: List[Dict[str, Any]]
    total: int
