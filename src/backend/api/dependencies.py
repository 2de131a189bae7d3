"""
FastAPI dependencies for shared resources.
"""

import logging

from entities.assistant import DataAssistant
from entities.pipeline import PipelineClients
from fastapi import Depends, HTTPException, Request

logger = logging.getLogger(__name__)


def get_clients(request: Request) -> PipelineClients:
    """
    Get the pipeline clients from app state.

    Raises HTTPException 503 if not initialized.
    """
    clients = getattr(request.app.state, "clients", None)
    if clients is None:
        raise HTTPException(status_code=503, detail="Pipeline not initialized")
    return clients


def get_assistant(clients: PipelineClients = Depends(get_clients)) -> DataAssistant:
    """Build a DataAssistant over the shared chat LLM."""
    return DataAssistant(clients.chat_llm, history_turns=clients.settings.prompt_history_turns)
