"""
prismaflow Workflow Layer

Ledger, candidate store, decision state machine, ingestion, screening and
project operations.
"""

from prismaflow.workflow.candidates import CandidateStore
from prismaflow.workflow.decisions import DecisionStateMachine, decision_delta
from prismaflow.workflow.ingestion import IngestionPipeline
from prismaflow.workflow.ledger import PrismaLedger
from prismaflow.workflow.projects import ProjectStore
from prismaflow.workflow.screening import ScreeningService

__all__ = [
    "CandidateStore",
    "DecisionStateMachine",
    "IngestionPipeline",
    "PrismaLedger",
    "ProjectStore",
    "ScreeningService",
    "decision_delta",
]
