"""Pipeline steps. Each takes the running state and returns it updated."""

from __future__ import annotations

import logging
from typing import Any, Dict

from health_agent.graph.state import PipelineState
from health_agent.models import RawModelResponse
from health_agent.pipeline.extract import extract
from health_agent.pipeline.normalize import is_sentinel
from health_agent.pipeline.validate import validate
from health_agent.prompts.templates import build_prompt
from health_agent.tasks import task_spec
from health_agent.tools import llm

logger = logging.getLogger(__name__)


def render(state: PipelineState) -> PipelineState:
    request = state["request"]
    task_spec(request.kind).check(request)
    state["prompt"] = build_prompt(request)
    return state


def generate(state: PipelineState) -> PipelineState:
    prompt = state["prompt"]
    text = llm.generate(prompt.text, image=prompt.image, media_type=prompt.media_type)
    state["raw"] = RawModelResponse(text=text, prompt=prompt)
    logger.debug("Provider returned %d chars for %s", len(text), prompt.kind.value)
    state.setdefault("debug", {})["response_chars"] = len(text)
    return state


def parse(state: PipelineState) -> PipelineState:
    state["payload"] = extract(state["raw"].text)
    return state


def _with_defaults(payload: Dict[str, Any], defaults: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(payload)
    for key, value in defaults.items():
        if value and is_sentinel(merged.get(key)):
            merged[key] = value
    return merged


def check(state: PipelineState) -> PipelineState:
    request = state["request"]
    spec = task_spec(request.kind)
    payload = _with_defaults(state["payload"], spec.defaults(request))
    state["result"] = validate(request.kind, payload)
    return state


def apply_rules(state: PipelineState) -> PipelineState:
    request = state["request"]
    state["result"] = task_spec(request.kind).rule(request, state["result"])
    return state
