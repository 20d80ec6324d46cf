from __future__ import annotations

import pytest

from placement.recruitment.models import COMPLETION_MESSAGE
from placement.recruitment.stages import clamp_index, describe_next_step, plan_advance, plan_for_index

PROCESS = ["OA", "Interview", "HR"]


def test_walkthrough_of_three_stage_pipeline():
    assert describe_next_step(PROCESS, 0) == "Prepare for Interview"

    plan = plan_advance(PROCESS, 0, "applied")
    assert (plan.index, plan.stage, plan.next_step, plan.status) == (1, "Interview", "Prepare for HR", "applied")

    plan = plan_advance(PROCESS, plan.index, plan.status)
    assert (plan.index, plan.stage, plan.next_step, plan.status) == (2, "HR", COMPLETION_MESSAGE, "selected")


@pytest.mark.parametrize("n", [1, 2, 3, 5, 8])
def test_n_advances_always_end_selected_at_last_index(n):
    process = [f"Stage {i}" for i in range(n)]
    index, status = 0, "applied"
    for _ in range(n):
        plan = plan_advance(process, index, status)
        assert plan.index <= n - 1
        index, status = plan.index, plan.status
    assert index == n - 1
    assert status == "selected"


def test_advance_is_clamped_at_final_stage():
    plan = plan_advance(PROCESS, 2, "selected")
    assert plan.index == 2
    assert plan.status == "selected"


def test_status_unchanged_before_final_stage():
    assert plan_advance(PROCESS, 0, "stage-progress").status == "stage-progress"


def test_out_of_range_index_is_clamped_before_planning():
    assert clamp_index(PROCESS, None) == 0
    assert clamp_index(PROCESS, -4) == 0
    assert clamp_index(PROCESS, 17) == 2
    assert clamp_index(PROCESS, "1") == 1
    assert plan_advance(PROCESS, 99, "applied").index == 2


def test_plan_for_index_rejects_bad_input():
    with pytest.raises(ValueError):
        plan_for_index([], 0, "applied")
    with pytest.raises(ValueError):
        plan_for_index(PROCESS, 3, "applied")
