from node_intake.models.audit_log import AuditLog
from node_intake.models.base import Base
from node_intake.models.batch_log import BatchLog
from node_intake.models.entity import Entity
from node_intake.models.node import Node
from node_intake.models.staging_node import StagingNode

__all__ = [
    "AuditLog",
    "Base",
    "BatchLog",
    "Entity",
    "Node",
    "StagingNode",
]
