from typing import Any, Dict, Required, TypedDict

from pydantic import BaseModel

from health_agent.errors import PipelineError
from health_agent.models import PromptSpec, RawModelResponse, TaskRequest


class PipelineState(TypedDict, total=False):
    request: Required[TaskRequest]
    prompt: PromptSpec
    raw: RawModelResponse
    payload: Dict[str, Any]
    result: BaseModel
    error: PipelineError
    debug: dict
