"""Tests for the generation backends."""

from __future__ import annotations

import asyncio
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from wattshare.config import Settings
from wattshare.domain.models import GenerationInterval, GenerationRequest
from wattshare.exceptions import GenerationError
from wattshare.services.generation import (
    HeuristicResolutionGenerator,
    OpenAIResolutionGenerator,
    build_generator,
    render_prompt,
)


def _item(appliance: str, start: str, end: str, day: str, household: str) -> GenerationInterval:
    return GenerationInterval(
        appliance_type=appliance,
        start_time=start,
        end_time=end,
        day_of_week=day,
        household=household,
    )


@pytest.fixture()
def request_with_conflict() -> GenerationRequest:
    return GenerationRequest(
        household_a_schedule=[_item("car-charger", "22:00", "23:00", "Monday", "Household A")],
        household_b_schedule=[_item("oven", "22:30", "23:30", "Monday", "Household B")],
        user_preferences="Nobody cooks before 06:00",
    )


def _patch_openai(content: str | None):
    """Patch the OpenAI async client so no network call is made."""
    client = MagicMock()
    client.chat.completions.create = AsyncMock(
        return_value=SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=content))]
        )
    )
    client.__aenter__ = AsyncMock(return_value=client)
    client.__aexit__ = AsyncMock(return_value=False)
    return patch("openai.AsyncOpenAI", return_value=client), client


def test_heuristic_reports_conflict_and_suggestion(request_with_conflict):
    payload = asyncio.run(HeuristicResolutionGenerator().generate(request_with_conflict))

    assert payload["conflictsDetected"] is True
    assert "car-charger 22:00-23:00 (Household A)" in payload["conflictSummary"]
    [change] = payload["suggestedTimeChanges"]
    assert change["applianceType"] == "oven"
    assert (change["suggestedStartTime"], change["suggestedEndTime"]) == ("06:00", "07:00")


def test_heuristic_without_conflicts():
    request = GenerationRequest(
        household_a_schedule=[_item("washing-machine", "08:00", "09:00", "Tuesday", "Household A")],
        household_b_schedule=[_item("dryer", "08:00", "09:00", "Wednesday", "Household B")],
    )
    payload = asyncio.run(HeuristicResolutionGenerator().generate(request))
    assert payload["conflictsDetected"] is False
    assert payload["suggestedTimeChanges"] == []


def test_heuristic_honours_search_window(request_with_conflict):
    generator = HeuristicResolutionGenerator(day_start="17:00", day_end="23:59", step_minutes=30)
    payload = asyncio.run(generator.generate(request_with_conflict))
    [change] = payload["suggestedTimeChanges"]
    assert change["suggestedStartTime"] == "17:00"


def test_prompt_lists_both_schedules(request_with_conflict):
    prompt = render_prompt(request_with_conflict)
    assert "Household A schedule:\n- Monday: car-charger from 22:00 to 23:00" in prompt
    assert "Household B schedule:\n- Monday: oven from 22:30 to 23:30" in prompt
    assert "Usage history: Not provided" in prompt
    assert "User preferences: Nobody cooks before 06:00" in prompt


def test_prompt_for_empty_schedule():
    prompt = render_prompt(GenerationRequest(household_a_schedule=[], household_b_schedule=[]))
    assert prompt.count("(no scheduled usage)") == 2


def test_openai_backend_decodes_json(request_with_conflict):
    expected = {"conflictsDetected": False, "conflictSummary": "ok", "suggestedTimeChanges": []}
    patcher, client = _patch_openai(json.dumps(expected))
    with patcher:
        payload = asyncio.run(
            OpenAIResolutionGenerator(model="gpt-4o-mini", api_key="test").generate(
                request_with_conflict
            )
        )

    assert payload == expected
    kwargs = client.chat.completions.create.call_args.kwargs
    assert kwargs["model"] == "gpt-4o-mini"
    assert kwargs["response_format"] == {"type": "json_object"}
    assert kwargs["temperature"] == 0
    assert "car-charger" in kwargs["messages"][1]["content"]


def test_openai_backend_closes_its_client(request_with_conflict):
    patcher, client = _patch_openai(json.dumps({"conflictsDetected": False}))
    with patcher:
        asyncio.run(OpenAIResolutionGenerator(api_key="test").generate(request_with_conflict))

    client.__aenter__.assert_awaited_once()
    client.__aexit__.assert_awaited_once()


def test_openai_backend_closes_client_on_failure(request_with_conflict):
    patcher, client = _patch_openai(None)
    client.chat.completions.create.side_effect = TimeoutError("upstream timed out")
    with patcher, pytest.raises(TimeoutError):
        asyncio.run(OpenAIResolutionGenerator(api_key="test").generate(request_with_conflict))

    client.__aexit__.assert_awaited_once()


def test_openai_backend_rejects_invalid_json(request_with_conflict):
    patcher, _ = _patch_openai("Sure! Here are your conflicts:")
    with patcher, pytest.raises(GenerationError, match="invalid JSON"):
        asyncio.run(OpenAIResolutionGenerator(api_key="test").generate(request_with_conflict))


def test_openai_backend_rejects_empty_content(request_with_conflict):
    patcher, _ = _patch_openai(None)
    with patcher, pytest.raises(GenerationError, match="empty"):
        asyncio.run(OpenAIResolutionGenerator(api_key="test").generate(request_with_conflict))


def test_build_generator_follows_settings():
    heuristic = build_generator(Settings(generator="heuristic", suggestion_step_minutes=5))
    assert isinstance(heuristic, HeuristicResolutionGenerator)
    assert heuristic.step_minutes == 5

    remote = build_generator(Settings(generator="openai", openai_model="gpt-4.1-mini"))
    assert isinstance(remote, OpenAIResolutionGenerator)
    assert remote.model == "gpt-4.1-mini"


def test_settings_reject_bad_search_window():
    with pytest.raises(ValueError):
        Settings(suggestion_day_start="6am")
