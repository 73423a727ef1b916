#!filepath: tests/pipeline/test_builder.py
import pytest

from tradeflow.pipeline.builder import PipelineStepConfig, build_steps
from tradeflow.pipeline.parameters import IntParam, ParameterDef, ParameterSchema
from tradeflow.pipeline.registry import StepRegistry
from tradeflow.pipeline.steps import Continue, Step, StepCategory, StepDefinition
from tradeflow.utils.errors import StepBuildError


def _definition(key: str, schema: ParameterSchema = ParameterSchema(), name: str = "") -> StepDefinition:
    def create(params, services):
        async def execute(ctx, token):
            return Continue(ctx, key)
        return Step(key, execute)

    return StepDefinition(
        key=key,
        name=name or key,
        description="",
        category=StepCategory.SIGNAL,
        create=create,
        parameter_schema=schema,
    )


def test_registry_last_registration_wins():
    reg = StepRegistry.create([_definition("a", name="first"), _definition("a", name="second")])

    assert len(reg) == 1
    assert reg.try_find("a").name == "second"
    assert reg.try_find("missing") is None
    assert "a" in reg


def test_build_sorts_by_order_and_skips_disabled():
    reg = StepRegistry.create([_definition("a"), _definition("b"), _definition("c")])
    configs = [
        PipelineStepConfig("c", order=3),
        PipelineStepConfig("a", order=1),
        PipelineStepConfig("b", order=2, enabled=False),
    ]

    steps = build_steps(reg, None, configs)

    assert [s.key for s in steps] == ["a", "c"]


def test_unknown_key_and_bad_params_are_collected():
    schema = ParameterSchema(parameters=(ParameterDef("n", "N", IntParam(1, 5)),))
    reg = StepRegistry.create([_definition("a", schema)])
    configs = [
        PipelineStepConfig("a", order=1, parameters={"n": "9"}),
        PipelineStepConfig("nope", order=2),
    ]

    with pytest.raises(StepBuildError) as ei:
        build_steps(reg, None, configs)

    keys = [e.step_key for e in ei.value.errors]
    assert keys == ["a", "nope"]
    assert str(ei.value).startswith("a: n: ")
    assert "nope: unknown step type" in str(ei.value)


def test_disabled_unknown_step_is_ignored():
    reg = StepRegistry.create([_definition("a")])
    steps = build_steps(reg, None, [PipelineStepConfig("ghost", order=1, enabled=False)])

    assert steps == []
